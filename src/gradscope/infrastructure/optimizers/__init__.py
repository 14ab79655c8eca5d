from ._base import Optimizer
from ._sgd import SGD, Momentum
from ._adagrad import Adagrad, Adadelta
from ._adam import Adam, Adamax
from ._rmsprop import RMSProp

__all__ = [
    "Optimizer",
    "SGD",
    "Momentum",
    "Adagrad",
    "Adadelta",
    "Adam",
    "Adamax",
    "RMSProp",
]
