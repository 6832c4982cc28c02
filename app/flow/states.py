"""
app/flow/states.py

Purpose: Defines all conversation states

- Enum for each step of the product submission flow
  (AWAITING_IMAGES, AWAITING_TITLE, ..., SUBMITTED)
- Enum for the profile registration flow
- Single source of truth for step order and prompts
- Step transition validation
"""

from enum import Enum
from typing import Dict, List, Optional, Union
from dataclasses import dataclass


class SubmissionStep(str, Enum):
    """
    Steps of the "sell a product" conversation, in order.
    IDLE and SUBMITTED never live in a session: IDLE means there is no
    session and SUBMITTED clears it.
    """

    IDLE = "idle"
    AWAITING_IMAGES = "awaiting_images"
    AWAITING_TITLE = "awaiting_title"
    AWAITING_PRICE = "awaiting_price"
    AWAITING_DESCRIPTION = "awaiting_description"
    AWAITING_CATEGORY = "awaiting_category"
    SUBMITTED = "submitted"


class RegistrationStep(str, Enum):
    """Steps of the /verify profile flow."""

    AWAITING_DEPARTMENT = "awaiting_department"
    AWAITING_YEAR = "awaiting_year"


FlowStep = Union[SubmissionStep, RegistrationStep]


@dataclass
class StepMetadata:
    """
    Metadata associated with each input-awaiting step.
    """
    name: FlowStep
    display_name: str
    step_number: Optional[int] = None  # For progress tracking
    total_steps: int = 5
    accepts_photos: bool = False


STEP_METADATA: Dict[FlowStep, StepMetadata] = {
    SubmissionStep.AWAITING_IMAGES: StepMetadata(
        name=SubmissionStep.AWAITING_IMAGES,
        display_name="Photos",
        step_number=1,
        accepts_photos=True,
    ),
    SubmissionStep.AWAITING_TITLE: StepMetadata(
        name=SubmissionStep.AWAITING_TITLE,
        display_name="Title",
        step_number=2,
    ),
    SubmissionStep.AWAITING_PRICE: StepMetadata(
        name=SubmissionStep.AWAITING_PRICE,
        display_name="Price",
        step_number=3,
    ),
    SubmissionStep.AWAITING_DESCRIPTION: StepMetadata(
        name=SubmissionStep.AWAITING_DESCRIPTION,
        display_name="Description",
        step_number=4,
    ),
    SubmissionStep.AWAITING_CATEGORY: StepMetadata(
        name=SubmissionStep.AWAITING_CATEGORY,
        display_name="Category",
        step_number=5,
    ),
    RegistrationStep.AWAITING_DEPARTMENT: StepMetadata(
        name=RegistrationStep.AWAITING_DEPARTMENT,
        display_name="Department",
        step_number=1,
        total_steps=2,
    ),
    RegistrationStep.AWAITING_YEAR: StepMetadata(
        name=RegistrationStep.AWAITING_YEAR,
        display_name="Year of study",
        step_number=2,
        total_steps=2,
    ),
}


# Valid step transitions - prevents skipping steps
STEP_TRANSITIONS: Dict[FlowStep, List[FlowStep]] = {
    SubmissionStep.IDLE: [SubmissionStep.AWAITING_IMAGES],
    SubmissionStep.AWAITING_IMAGES: [SubmissionStep.AWAITING_TITLE],
    SubmissionStep.AWAITING_TITLE: [SubmissionStep.AWAITING_PRICE],
    SubmissionStep.AWAITING_PRICE: [SubmissionStep.AWAITING_DESCRIPTION],
    SubmissionStep.AWAITING_DESCRIPTION: [SubmissionStep.AWAITING_CATEGORY],
    SubmissionStep.AWAITING_CATEGORY: [SubmissionStep.SUBMITTED],
    SubmissionStep.SUBMITTED: [],
    RegistrationStep.AWAITING_DEPARTMENT: [RegistrationStep.AWAITING_YEAR],
    RegistrationStep.AWAITING_YEAR: [],
}

# Steps a live session can be in
SUBMISSION_INPUT_STEPS = [
    SubmissionStep.AWAITING_IMAGES,
    SubmissionStep.AWAITING_TITLE,
    SubmissionStep.AWAITING_PRICE,
    SubmissionStep.AWAITING_DESCRIPTION,
    SubmissionStep.AWAITING_CATEGORY,
]


def is_valid_transition(from_step: FlowStep, to_step: FlowStep) -> bool:
    """
    Checks if a step transition is valid.

    Args:
        from_step: Current step
        to_step: Target step

    Returns:
        True if transition is allowed, False otherwise
    """
    return to_step in STEP_TRANSITIONS.get(from_step, [])


def get_step_metadata(step: FlowStep) -> StepMetadata:
    """
    Retrieves metadata for a given step.
    """
    return STEP_METADATA.get(step, StepMetadata(
        name=step,
        display_name=step.value,
    ))


def get_progress_message(step: FlowStep) -> str:
    """
    Generates a progress label for the current step (e.g., "Step 3/5").
    """
    metadata = get_step_metadata(step)
    if metadata.step_number and metadata.step_number > 0:
        return f"Step {metadata.step_number}/{metadata.total_steps}"
    return ""
