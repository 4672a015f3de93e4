def test_status_reports_remote_only_runtime(client):
    data = client.get('/api/models/status').get_json()
    assert data['coordinator']['active_consumer'] == 'none'
    assert data['capabilities']['compatible'] is False
    assert 'disabled' in data['capabilities']['reason']
    assert set(data['models']) == {'translator', 'chatbot'}
    assert data['models']['chatbot']['load_status'] == 'idle'


def test_switch_rejected_without_resources(client):
    response = client.post('/api/models/switch', json={'target': 'chatbot'})
    assert response.status_code == 409
    assert response.get_json()['switched'] is False


def test_switch_validates_target(client):
    assert client.post('/api/models/switch', json={'target': 'gpu'}).status_code == 400


def test_browser_probe(client):
    ok = client.post('/api/models/probe', json={
        'deviceMemory': 8, 'gpu': False, 'crossOriginIsolated': True, 'wasm': True,
    }).get_json()
    assert ok['compatible'] is True
    assert ok['preferred_device'] == 'cpu'

    low = client.post('/api/models/probe', json={
        'deviceMemory': 2, 'crossOriginIsolated': True, 'wasm': True,
    }).get_json()
    assert low['compatible'] is False
    assert low['reason']


def test_browser_probe_rejects_bad_memory(client):
    assert client.post('/api/models/probe', json={'deviceMemory': 'many'}).status_code == 400


def test_translate_unavailable_returns_original_texts(client):
    response = client.post('/api/translate', json={'texts': ['hello world'], 'language': 'es'})
    assert response.status_code == 503
    assert response.get_json()['texts'] == ['hello world']


def test_translate_validates_texts(client):
    assert client.post('/api/translate', json={'texts': 'hello'}).status_code == 400


def test_health(client):
    data = client.get('/health').get_json()
    assert data['status'] == 'ok'
    assert data['redis'] is True
