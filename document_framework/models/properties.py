import typing


ChangeSet = typing.Dict[str, typing.Dict[str, typing.Any]]


class Properties:
    """Original-versus-current value tracking for a group of fields.

    ``original`` is the snapshot taken at load time, ``current`` holds pending overrides and
    ``remove`` the keys pending a null-out. A key is never pending in both at once.
    """

    def __init__(self, original: typing.Optional[typing.Dict[str, typing.Any]] = None) -> None:
        self._original: typing.Dict[str, typing.Any] = dict(original or {})
        self._current: typing.Dict[str, typing.Any] = {}
        self._remove: typing.List[str] = []

    @property
    def original(self) -> typing.Dict[str, typing.Any]:
        return dict(self._original)

    def get(self, key: str) -> typing.Any:
        if self.will_remove(key):
            return None
        if self.will_change(key):
            return self._current[key]
        return self._original.get(key)

    def set(self, key: str, value: typing.Any) -> None:
        if value is None:
            self.remove(key)
            return
        self._clear_removal(key)
        if value == self._original.get(key):
            self._clear_change(key)
        else:
            self._current[key] = value

    def remove(self, key: str) -> None:
        if self.will_remove(key):
            return
        self._clear_change(key)
        if self._original.get(key) is not None:
            self._remove.append(key)

    def rollback(self) -> None:
        self._current = {}
        self._remove = []

    def replace(self, original: typing.Dict[str, typing.Any]) -> None:
        self.rollback()
        self._original = dict(original)

    def are_dirty(self) -> bool:
        return bool(self._current) or bool(self._remove)

    def calculate_change_set(self) -> ChangeSet:
        change_set = {key: {"old": self._original.get(key), "new": value} for key, value in self._current.items()}
        for key in self._remove:
            change_set[key] = {"old": self._original[key], "new": None}
        return dict(sorted(change_set.items()))

    def will_remove(self, key: str) -> bool:
        return key in self._remove

    def will_change(self, key: str) -> bool:
        return key in self._current

    def _clear_removal(self, key: str) -> None:
        if self.will_remove(key):
            self._remove.remove(key)

    def _clear_change(self, key: str) -> None:
        self._current.pop(key, None)


class Attributes(Properties):
    pass


class HasOne(Properties):
    pass


class HasMany(Properties):
    """Has-many relationships: the originals are collections which track their own membership."""

    def are_dirty(self) -> bool:
        if super().are_dirty():
            return True
        return any(collection.is_dirty() for collection in self._original.values())

    def rollback(self) -> None:
        super().rollback()
        for collection in self._original.values():
            collection.rollback()

    def calculate_change_set(self) -> ChangeSet:
        return {
            key: collection.calculate_change_set()
            for key, collection in sorted(self._original.items())
            if collection.is_dirty()
        }


class EmbedsHasOne(Attributes):
    """Single embeds: dirty when an embed is swapped out or when the embed itself was modified."""

    def are_dirty(self) -> bool:
        return super().are_dirty() or any(embed.is_dirty() for embed in self._modified_embeds())

    def rollback(self) -> None:
        super().rollback()
        for embed in self._original.values():
            embed.rollback()

    def calculate_change_set(self) -> ChangeSet:
        change_set = super().calculate_change_set()
        for key, embed in self._original.items():
            if key not in change_set and embed.is_dirty():
                change_set[key] = {"old": embed, "new": embed}
        return dict(sorted(change_set.items()))

    def _modified_embeds(self) -> typing.Iterator[typing.Any]:
        for key in self._original:
            embed = self.get(key)
            if embed is not None:
                yield embed


class EmbedsHasMany(HasMany):
    pass
