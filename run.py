import os
import logging
from werkzeug.serving import WSGIRequestHandler
from cyberstack import create_app

class FilteredRequestHandler(WSGIRequestHandler):
    """
    Custom Request Handler to suppress high-frequency logs from the model status poller.
    """
    def log_request(self, code='-', size='-'):
        if 'GET /api/models/status' in self.requestline:
            return
        super().log_request(code, size)

def configure_logging():
    """
    Root logging for the service modules. Werkzeug keeps its own handler.
    """
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

# Logging first so the runtime probe at startup is visible
configure_logging()
app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get("PORT", 5000))

    print("\n" + "="*65)
    print(f"🚀 SERVER STARTING ON PORT {port}")
    print("="*65 + "\n")

    app.run(
        debug=os.environ.get("FLASK_DEBUG") == "1",
        port=port,
        host="0.0.0.0",
        request_handler=FilteredRequestHandler,
        use_reloader=False,
    )
