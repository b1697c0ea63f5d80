"""Input/Output modules for scenario and result files."""

from .io_json import JSONImporter, JSONExporter, JSONEncoder, ScenarioFile, SimulationSettings

__all__ = [
    'JSONImporter', 'JSONExporter', 'JSONEncoder', 'ScenarioFile', 'SimulationSettings',
]
