from cyberstack.core.engines.local import Action, Consumer, ModelEvent, ModelEventBus


def test_subscriber_filter_by_consumer():
    bus = ModelEventBus()
    translator_events, all_events = [], []
    bus.subscribe(translator_events.append, consumer=Consumer.TRANSLATOR)
    bus.subscribe(all_events.append)

    bus.publish(ModelEvent(Action.ACTIVATE, Consumer.TRANSLATOR))
    bus.publish(ModelEvent(Action.ACTIVATE, Consumer.CHATBOT))

    assert [e.name for e in translator_events] == ['activate-translator']
    assert [e.name for e in all_events] == ['activate-translator', 'activate-chatbot']


def test_unsubscribe_stops_delivery():
    bus = ModelEventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)
    unsubscribe()
    unsubscribe()
    bus.publish(ModelEvent(Action.DISPOSE, Consumer.CHATBOT))
    assert received == []


def test_failing_handler_does_not_block_others():
    bus = ModelEventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.publish(ModelEvent(Action.DISPOSE, Consumer.TRANSLATOR))
    assert len(received) == 1


def test_history_is_bounded():
    bus = ModelEventBus(history_size=2)
    for consumer in (Consumer.TRANSLATOR, Consumer.CHATBOT, Consumer.TRANSLATOR):
        bus.publish(ModelEvent(Action.ACTIVATE, consumer))
    assert [e.consumer for e in bus.history] == [Consumer.CHATBOT, Consumer.TRANSLATOR]
