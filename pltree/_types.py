"""Shared type aliases for coefficient scales, references and prediction types."""

from typing import Literal, TypeAlias

import numpy as np

ItemRef: TypeAlias = int | str | None
PredictType: TypeAlias = Literal["itempar", "rank", "best", "node"]
TerminalStorage: TypeAlias = Literal["object", "coefficients"]
RankMethod: TypeAlias = Literal["competition", "competition_max", "dense", "avg", "ordinal"]
ChoiceEvent: TypeAlias = tuple[tuple[int, ...], tuple[int, ...]]
FloatArray: TypeAlias = np.ndarray
