"""
Risk engine exceptions.

Only malformed call arguments are exceptional. Limit violations and
stop triggers are returned as data.
"""


class RiskEngineError(Exception):
    """Base class for all risk engine errors"""


class ValidationError(RiskEngineError, ValueError):
    """Input cannot be used (length mismatch, too few samples, bad field)"""


class UnknownScenarioError(ValidationError):
    """Stress scenario name not in the configured table (strict mode only)"""

    def __init__(self, scenario: str, known=()):
        self.scenario = scenario
        self.known = sorted(known)
        super().__init__(f"Unknown stress scenario '{scenario}'. Known: {self.known}")


class ConfigError(RiskEngineError):
    """Risk configuration could not be parsed"""
