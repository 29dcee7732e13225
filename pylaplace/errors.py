"""Exception types raised throughout pylaplace

Each derives from the builtin exception a numpy user would expect to catch,
so `except ValueError` and friends keep working
"""


class PotentialError(Exception):
    pass


class SizeMismatch(PotentialError, ValueError):
    """Array lengths that ought to agree do not"""


class UnknownName(PotentialError, KeyError):
    """No boundary region is registered under the given name"""

    def __str__(self):
        # KeyError repr-quotes its message otherwise
        return str(self.args[0]) if self.args else ''


class OutOfRange(PotentialError, IndexError):
    """Node label outside of [0, n_nodes)"""


class DegenerateGeometry(PotentialError, ValueError):
    """Isolated nodes, zero length edges or singular projections"""


class IllegalTransition(PotentialError, ValueError):
    """Fixed value nodes can not become zero gradient nodes without passing through inner"""


class PreconditionError(PotentialError, RuntimeError):
    pass


class DuplicateEntry(PotentialError, ValueError):
    """Region name already taken, or a label listed twice within one region"""
