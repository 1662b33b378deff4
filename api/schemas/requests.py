"""Request schemas for the API."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from proposalpilot.models import Certificate, SplitEntry, Tier


class TierInput(BaseModel):
    """One hierarchy level of a split: writing broker first, then uplines."""
    broker_id: str = Field(..., description="Broker at this level")
    schedule: Optional[str] = Field(default=None, description="Schedule code or direct rate, e.g. 'SCH-12' or '5.5%'")
    broker_name: Optional[str] = Field(default=None, description="Display name")
    paid_broker_id: Optional[str] = Field(default=None, description="Broker actually paid when commission is assigned away")

    def to_model(self) -> Tier:
        return Tier(
            broker_id=self.broker_id,
            schedule=self.schedule,
            broker_name=self.broker_name,
            paid_broker_id=self.paid_broker_id,
        )


class SplitInput(BaseModel):
    """A share of the certificate's premium."""
    sequence: int = Field(..., description="Split sequence number")
    percent: Decimal = Field(..., description="Split percent, e.g. 60")
    tiers: list[TierInput] = Field(default=[], description="Hierarchy tiers in level order")

    def to_model(self) -> SplitEntry:
        return SplitEntry(
            sequence=self.sequence,
            percent=self.percent,
            tiers=tuple(t.to_model() for t in self.tiers),
        )


class CertificateInput(BaseModel):
    """A certificate with its split configuration."""
    certificate_id: str = Field(..., description="Source certificate id")
    group_id: str = Field(..., description="Employer group id")
    product_code: str = Field(..., description="Product code")
    plan_code: str = Field(default="", description="Plan code")
    effective_date: date = Field(..., description="Effective date (ISO format: YYYY-MM-DD)")
    status: str = Field(default="A", description="Source status code")
    situs_state: Optional[str] = Field(default=None, description="Issue state")
    splits: list[SplitInput] = Field(default=[], description="Split entries")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "certificate_id": "C-0001",
                    "group_id": "G100",
                    "product_code": "LIFE",
                    "plan_code": "BASIC",
                    "effective_date": "2021-03-01",
                    "splits": [
                        {
                            "sequence": 1,
                            "percent": 100,
                            "tiers": [
                                {"broker_id": "B1", "schedule": "SCH-A"},
                                {"broker_id": "B2", "schedule": "5%"},
                            ],
                        }
                    ],
                }
            ]
        }
    }

    def to_model(self) -> Certificate:
        return Certificate(
            certificate_id=self.certificate_id,
            group_id=self.group_id,
            product_code=self.product_code,
            plan_code=self.plan_code,
            effective_date=self.effective_date,
            status=self.status.strip().upper(),
            splits=tuple(s.to_model() for s in self.splits),
            situs_state=self.situs_state,
        )


class ClassifyRequest(BaseModel):
    """Request to classify and synthesize one or more groups."""
    certificates: list[CertificateInput] = Field(..., description="Certificates of the groups to migrate")
    config: dict[str, Any] = Field(..., description="Migration thresholds (same keys as the config file)")
    groups: Optional[list[str]] = Field(default=None, description="Only these groups (default: every staged group)")
    existing_pha: dict[str, list[str]] = Field(default={}, description="group_id -> certificates with pre-existing PHA")
    identifier_seed: dict[str, int] = Field(default={}, description="Entity kind -> current maximum identifier")
    schedule_codes: list[str] = Field(default=[], description="Known schedule codes, used by deep validation")
    validate_output: bool = Field(default=False, description="Validate the staged output before returning")
    deep: bool = Field(default=False, description="Include chain, content and readiness checks")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "certificates": [],
                    "config": {
                        "high_entropy_unique_ratio": 0.9,
                        "high_entropy_shannon": 3.0,
                        "dominant_coverage_threshold": 0.5,
                        "pha_cluster_size_threshold": 10,
                    },
                    "identifier_seed": {"proposal": 500, "hierarchy": 1200},
                    "validate_output": True,
                }
            ]
        }
    }


class ValidateRequest(BaseModel):
    """Request to validate staged output against its source certificates."""
    certificates: list[CertificateInput] = Field(..., description="Source certificates")
    staged: dict[str, Any] = Field(..., description="Staged output as returned by POST /classify")
    groups: Optional[list[str]] = Field(default=None, description="Only these groups (default: every staged group)")
    existing_pha: dict[str, list[str]] = Field(default={}, description="group_id -> certificates with pre-existing PHA")
    schedule_codes: list[str] = Field(default=[], description="Known schedule codes")
    statuses: Optional[list[str]] = Field(default=None, description="Certificate statuses to validate (default: those recorded in staged.status_filters, else all)")
    deep: bool = Field(default=False, description="Include chain, content and readiness checks")
