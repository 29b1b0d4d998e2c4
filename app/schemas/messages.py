"""
Queue wire messages.

Bodies are JSON objects with camelCase keys. Models accept either the wire
alias or the Python field name, and serialize back to the wire aliases.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PipelineMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Route downstream missions to the campaign's own queues
    dedicated: bool = Field(False, alias="dedicated")

    def to_message(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ScrapeMission(PipelineMessage):
    """Published N times per campaign launch; a pool of scraper workers drains them."""
    campaign_id: str = Field(..., min_length=1, alias="campaignId")
    owner_id: str = Field(
        ...,
        min_length=1,
        alias="ownerId",
        validation_alias=AliasChoices("ownerId", "userId", "owner_id"),
    )
    target_role: str = Field(..., min_length=1, alias="targetRole")
    target_location: str = Field("", alias="targetLocation")
    resume_id: str = Field(..., min_length=1, alias="resumeId")


class MatchMission(PipelineMessage):
    """One per newly persisted ScrapedJob."""
    job_id: str = Field(..., min_length=1, alias="jobId")
    campaign_id: str = Field(..., min_length=1, alias="campaignId")
    owner_id: str = Field(
        ...,
        min_length=1,
        alias="ownerId",
        validation_alias=AliasChoices("ownerId", "userId", "owner_id"),
    )
    resume_id: str = Field(..., min_length=1, alias="resumeId")


class TailorMission(PipelineMessage):
    """One per positive match decision."""
    job_id: str = Field(..., min_length=1, alias="jobId")
    matched_pair_id: str = Field(..., min_length=1, alias="matchedPairId")
    campaign_id: str = Field(..., min_length=1, alias="campaignId")
    resume_id: str = Field(..., min_length=1, alias="resumeId")
