"""
Shared type definitions for schemas.

Centralizes the base models and literal types used across the message,
request and output schemas.

Layering:
- This module provides FOUNDATION types (BaseStrictModel, PermissiveModel, literals)
- messages.py builds the wire message union on PermissiveModel
- request.py and outputs.py build our own records on StrictModel
"""

from __future__ import annotations

from typing import Literal

import pydantic

# ==============================================================================
# Base Strict Model (Foundation)
# ==============================================================================


class BaseStrictModel(pydantic.BaseModel):
    """
    Foundation strict model for records this package creates or accepts as input.

    Uses extra='forbid' to reject unknown fields - a misspelled item option
    fails validation instead of being silently ignored.
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Reject unknown fields (fail-fast)
        strict=True,  # Strict type coercion
        frozen=True,  # Immutable after creation
    )


class StrictModel(BaseStrictModel):
    """Package-level strict model.

    Inherits from BaseStrictModel (extra='forbid', strict=True, frozen=True).
    """

    pass


# ==============================================================================
# Permissive Model (Foundation)
# ==============================================================================


class PermissiveModel(pydantic.BaseModel):
    """
    Foundation permissive model for agent runtime messages.

    Symmetry with BaseStrictModel:
    - BaseStrictModel: extra='forbid' (rejects unknown fields)
    - PermissiveModel: extra='allow' (accepts and keeps unknown fields)

    The runtime adds envelope fields between releases (uuid, slash_commands,
    output_style, ...). Extra keys are kept so a message can be re-emitted
    verbatim with model_dump(mode='json', exclude_unset=True).
    """

    model_config = pydantic.ConfigDict(
        extra='allow',  # Accept unknown fields (graceful fallback)
        strict=True,  # Strict type coercion for known fields
        frozen=True,  # Immutable after creation
    )

    def get_extra_fields(self) -> dict[str, object]:
        """Get extra fields captured by this permissive model.

        Returns only the unknown fields, not defined model fields.
        """
        return dict(self.__pydantic_extra__) if self.__pydantic_extra__ else {}


# ==============================================================================
# Literal Types
# ==============================================================================

SessionMode = Literal['new', 'continue', 'resume', 'fork']
"""How a run relates to earlier sessions."""

PermissionMode = Literal['bypassPermissions', 'acceptEdits', 'default', 'plan']
"""Permission modes understood by the agent runtime."""

OutputFormat = Literal['text', 'summary', 'full']
"""Projection produced for each item."""

SystemPromptMode = Literal['default', 'append', 'custom']
"""System prompt override policy."""

ResultSubtype = Literal['success', 'error_max_turns', 'error_during_execution']
"""Result subtypes with dedicated handling. Other subtypes are accepted as plain strings."""
