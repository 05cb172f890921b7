from .refiner import CalibrationRefiner, RefinerConfig, RefinementResult
from .cost_functions import CalibrationCostFunction, ParameterBuilder, ParameterLayout

__all__ = [
    'CalibrationRefiner',
    'RefinerConfig',
    'RefinementResult',
    'CalibrationCostFunction',
    'ParameterBuilder',
    'ParameterLayout',
]
