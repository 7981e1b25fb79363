#!filepath: amtest/config/acceptance_config.py
from pydantic import BaseModel, Field


class AcceptanceOpts(BaseModel):
    """
    Per-test options.

    tolerance          : seconds of slack on both ends of every expectation interval
    fail_on_unexpected : observations matching no expectation fail the report
                         (default: they are only listed)
    """

    tolerance: float = Field(0.0, ge=0)
    fail_on_unexpected: bool = False
