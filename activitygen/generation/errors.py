class ActivityWriteError(Exception):
    """Base class for everything the mock generator refuses to do."""


class InvalidInputError(ActivityWriteError):
    pass


class ReferenceResolutionError(ActivityWriteError):
    """A namespace or mount named by the request does not exist."""


class TooFewSegmentsError(ActivityWriteError):
    def __init__(self, total: int, skipped: int, empty: int) -> None:
        self.total = total
        self.skipped = skipped
        self.empty = empty
        reserved = skipped + empty
        super().__init__(
            f"num segments {total} is too low, it must be greater than {reserved} "
            f"({skipped} skipped indexes + {empty} empty indexes)"
        )


class MissingRepeatedClientsError(ActivityWriteError):
    def __init__(self, missing: int) -> None:
        self.missing = missing
        super().__init__(f"missing repeated {missing} clients matching given parameters")


class ClientIDGenerationError(ActivityWriteError):
    pass
