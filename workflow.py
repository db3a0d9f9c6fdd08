"""
Step state machine for the style replication wizard.

UPLOAD_REFERENCE -> ANALYZING -> PROMPT_READY -> UPLOAD_SOURCE -> GENERATING -> RESULT

Every event is guarded by the step it is legal in; a rejected event leaves the
state untouched and returns False. Network calls go through an injected
StyleService so the machine can run against a stand-in.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from errors import StyleReplicatorError
from models import EncodedImage, Step, StyleDescription, WorkflowState

logger = logging.getLogger(__name__)

GENERIC_ANALYSIS_ERROR = "Analysis failed."
GENERIC_GENERATION_ERROR = "Generation failed."

MILESTONES = [Step.UPLOAD_REFERENCE, Step.PROMPT_READY, Step.UPLOAD_SOURCE, Step.RESULT]


class StyleService(Protocol):
    def analyze(self, image: EncodedImage) -> StyleDescription:
        ...

    def apply(self, image: EncodedImage, style_prompt: str) -> EncodedImage:
        ...


def progress_index(step: Step) -> int:
    """Index of the visible milestone for a step (in-flight steps share their upload's)."""
    if step is Step.ANALYZING:
        return 0
    if step is Step.GENERATING:
        return 2
    return MILESTONES.index(step)


class Workflow:
    """Owns the session's WorkflowState and every transition on it."""

    def __init__(self, state: Optional[WorkflowState] = None):
        self.state = state or WorkflowState()
        # attempt number; bumped on every call start and on reset
        self.attempt = 0

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    def _reject(self, event: str) -> bool:
        logger.warning("Ignoring %s while in %s", event, self.state.step.value)
        return False

    def _goto(self, step: Step) -> None:
        logger.info("Step %s -> %s", self.state.step.value, step.value)
        self.state.step = step

    def _is_current(self, token: int, in_flight: Step, event: str) -> bool:
        """True only for the live attempt while its call is still outstanding."""
        if token != self.attempt:
            logger.warning("Discarding stale %s for attempt %d (current %d)", event, token, self.attempt)
            return False
        if self.state.step is not in_flight:
            return self._reject(event)
        return True

    # -------------------------------------------------------------------------
    # capture mode
    # -------------------------------------------------------------------------

    def enter_capture_mode(self) -> bool:
        if self.state.step not in (Step.UPLOAD_REFERENCE, Step.UPLOAD_SOURCE):
            return self._reject("enter_capture_mode")
        self.state.is_capture_mode_active = True
        return True

    def cancel_capture(self) -> bool:
        if self.state.step not in (Step.UPLOAD_REFERENCE, Step.UPLOAD_SOURCE):
            return self._reject("cancel_capture")
        self.state.is_capture_mode_active = False
        return True

    # -------------------------------------------------------------------------
    # analysis
    # -------------------------------------------------------------------------

    def begin_analysis(self, image: EncodedImage) -> Optional[int]:
        """Commit a reference capture and enter ANALYZING.

        Returns the attempt token, or None if the event was rejected.
        """
        if self.state.step is not Step.UPLOAD_REFERENCE:
            self._reject("reference capture")
            return None
        self.state.reference_image = image
        self.state.is_capture_mode_active = False
        self.state.error_message = None
        self.attempt += 1
        self._goto(Step.ANALYZING)
        return self.attempt

    def finish_analysis(self, token: int, description: StyleDescription) -> bool:
        if not self._is_current(token, Step.ANALYZING, "analysis result"):
            return False
        self.state.style_description = description
        self._goto(Step.PROMPT_READY)
        return True

    def fail_analysis(self, token: int, message: str) -> bool:
        if not self._is_current(token, Step.ANALYZING, "analysis failure"):
            return False
        self.state.error_message = message or GENERIC_ANALYSIS_ERROR
        self.state.style_description = None
        self._goto(Step.UPLOAD_REFERENCE)
        return True

    def capture_reference(self, image: EncodedImage, service: StyleService) -> bool:
        """Run the full reference capture: analysis call and its outcome."""
        token = self.begin_analysis(image)
        if token is None:
            return False
        try:
            description = service.analyze(image)
        except StyleReplicatorError as ex:
            logger.warning("Analysis failed: %s", ex)
            self.fail_analysis(token, str(ex))
            return False
        except Exception:
            logger.exception("Unexpected error during analysis")
            self.fail_analysis(token, GENERIC_ANALYSIS_ERROR)
            return False
        return self.finish_analysis(token, description)

    # -------------------------------------------------------------------------
    # navigation
    # -------------------------------------------------------------------------

    def continue_to_source(self) -> bool:
        if self.state.step is not Step.PROMPT_READY:
            return self._reject("continue")
        self.state.is_capture_mode_active = False
        self._goto(Step.UPLOAD_SOURCE)
        return True

    def back_to_prompt(self) -> bool:
        if self.state.step is not Step.UPLOAD_SOURCE:
            return self._reject("back")
        self.state.is_capture_mode_active = False
        self._goto(Step.PROMPT_READY)
        return True

    # -------------------------------------------------------------------------
    # generation
    # -------------------------------------------------------------------------

    def begin_generation(self, image: EncodedImage) -> Optional[int]:
        """Commit a source capture and enter GENERATING.

        A capture without a style description is recorded but starts nothing.
        """
        if self.state.style_description is None:
            self.state.source_image = image
            self.state.is_capture_mode_active = False
            logger.warning("Source captured without a style description; nothing to apply")
            return None
        if self.state.step is not Step.UPLOAD_SOURCE:
            self._reject("source capture")
            return None
        self.state.source_image = image
        self.state.is_capture_mode_active = False
        self.state.error_message = None
        self.attempt += 1
        self._goto(Step.GENERATING)
        return self.attempt

    def finish_generation(self, token: int, image: EncodedImage) -> bool:
        if not self._is_current(token, Step.GENERATING, "generation result"):
            return False
        self.state.generated_image = image
        self._goto(Step.RESULT)
        return True

    def fail_generation(self, token: int, message: str) -> bool:
        if not self._is_current(token, Step.GENERATING, "generation failure"):
            return False
        self.state.error_message = message or GENERIC_GENERATION_ERROR
        self.state.generated_image = None
        self._goto(Step.UPLOAD_SOURCE)
        return True

    def capture_source(self, image: EncodedImage, service: StyleService) -> bool:
        """Run the full source capture: generation call and its outcome."""
        token = self.begin_generation(image)
        if token is None:
            return False
        prompt = self.state.style_description.cohesive_prompt
        try:
            generated = service.apply(image, prompt)
        except StyleReplicatorError as ex:
            logger.warning("Generation failed: %s", ex)
            self.fail_generation(token, str(ex))
            return False
        except Exception:
            logger.exception("Unexpected error during generation")
            self.fail_generation(token, GENERIC_GENERATION_ERROR)
            return False
        return self.finish_generation(token, generated)

    # -------------------------------------------------------------------------
    # reset
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Return to UPLOAD_REFERENCE and orphan any in-flight attempt."""
        logger.info("Reset from %s", self.state.step.value)
        self.attempt += 1
        self.state = WorkflowState()
