import typing

import attr


class Events:
    post_load = "post_load"

    pre_commit = "pre_commit"
    post_commit = "post_commit"

    pre_create = "pre_create"
    post_create = "post_create"

    pre_update = "pre_update"
    post_update = "post_update"

    pre_delete = "pre_delete"
    post_delete = "post_delete"

    pre_query = "pre_query"

    on_metadata_load = "on_metadata_load"
    on_metadata_cache_load = "on_metadata_cache_load"


class EventArguments:
    pass


@attr.s(auto_attribs=True)
class ModelLifecycleArguments(EventArguments):
    model: typing.Any


@attr.s(auto_attribs=True)
class PreQueryArguments(EventArguments):
    metadata: typing.Any
    store: typing.Any
    persister: typing.Any
    criteria: typing.Dict[str, typing.Any]


@attr.s(auto_attribs=True)
class MetadataArguments(EventArguments):
    metadata: typing.Any


class EventSubscriber:
    def get_events(self) -> typing.List[str]:
        raise NotImplementedError


class EventDispatcher:
    """Calls listener methods named after the dispatched event, e.g. ``listener.post_load(arguments)``."""

    def __init__(self) -> None:
        self._listeners: typing.Dict[str, typing.Dict[int, object]] = {}

    def add_listener(self, event_names: typing.Union[str, typing.Iterable[str]], listener: object) -> None:
        for event_name in self._as_list(event_names):
            if not callable(getattr(listener, event_name, None)):
                raise TypeError(
                    f'The listener {type(listener).__name__} does not have the appropriate event method "{event_name}"'
                )
            self._listeners.setdefault(event_name, {})[id(listener)] = listener

    def add_subscriber(self, subscriber: EventSubscriber) -> None:
        self.add_listener(subscriber.get_events(), subscriber)

    def remove_listener(self, event_names: typing.Union[str, typing.Iterable[str]], listener: object) -> None:
        for event_name in self._as_list(event_names):
            self._listeners.get(event_name, {}).pop(id(listener), None)

    def remove_subscriber(self, subscriber: EventSubscriber) -> None:
        self.remove_listener(subscriber.get_events(), subscriber)

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    def dispatch(self, event_name: str, arguments: typing.Optional[EventArguments] = None) -> None:
        if not self.has_listeners(event_name):
            return
        arguments = arguments or EventArguments()
        for listener in list(self._listeners[event_name].values()):
            getattr(listener, event_name)(arguments)

    @staticmethod
    def _as_list(event_names: typing.Union[str, typing.Iterable[str]]) -> typing.List[str]:
        if isinstance(event_names, str):
            return [event_names]
        return list(event_names)
