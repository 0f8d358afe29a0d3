# ------------------------------
# Error Taxonomy
# ------------------------------


class AntRouteError(Exception):
    """Base class for all antroute errors"""


class SchemaError(AntRouteError):
    """Input table is malformed (missing columns, wrong branch count, bad values)"""


class ClassificationError(AntRouteError):
    """Junction handedness or turn angle cannot be resolved"""


class JoinAmbiguityError(AntRouteError):
    """More than one turn matches a single trajectory key"""


class IncompleteModelError(AntRouteError):
    """A fitted model has no probability for a required approach class"""


class ConservationError(AntRouteError):
    """Assembled exit probabilities of an approach do not sum to 1"""
