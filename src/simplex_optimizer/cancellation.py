class CancellationToken:
    """Flag checked by the solvers once per pivot, node or cut round.

    Once cancelled a token can't be reset; use a new token for later solves.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def is_cancelled(token: CancellationToken | None) -> bool:
    return token is not None and token.cancelled
