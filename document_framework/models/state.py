import attr


EMPTY = "empty"
LOADED = "loaded"
DIRTY = "dirty"
DELETING = "deleting"
DELETED = "deleted"
NEW = "new"


@attr.s(auto_attribs=True)
class State:
    """Lifecycle flags of a model: ``empty -> loaded -> (dirty) -> new | deleting -> deleted``."""

    empty: bool = True
    loaded: bool = False
    dirty: bool = False
    deleting: bool = False
    deleted: bool = False
    new: bool = False

    def is_(self, status: str) -> bool:
        return getattr(self, status)

    def set_empty(self, bit: bool = True) -> None:
        self.empty = bit

    def set_loaded(self, bit: bool = True) -> None:
        self.empty = False
        self.loaded = bit

    def set_new(self, bit: bool = True) -> None:
        self.set_loaded()
        self.new = bit

    def set_dirty(self, bit: bool = True) -> None:
        self.dirty = bit

    def set_deleting(self, bit: bool = True) -> None:
        self.deleting = bit

    def set_deleted(self, bit: bool = True) -> None:
        self.deleted = bit
        if bit:
            self.deleting = False
            self.dirty = False
