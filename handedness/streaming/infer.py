from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from handedness.streaming.labels import DEFAULT_LABELS, LabelSet, resolve_label_set

logger = logging.getLogger(__name__)

WindowModel = Callable[[np.ndarray], np.ndarray]

_SKLEARN_SUFFIXES = (".joblib", ".pkl")
_TORCH_SUFFIXES = (".pt", ".pth")
_TORCHSCRIPT_SUFFIXES = (".ts", ".torchscript")


class ModelLoadError(RuntimeError):
    """The model artifact is missing, unsupported or corrupt."""


@dataclass(frozen=True)
class ClassificationResult:
    index: int
    label: str
    confidences: np.ndarray


class SklearnWindowModel:
    """Adapter for a scikit-learn estimator trained on flattened windows."""

    def __init__(self, estimator: Any, *, class_names: Sequence[str] | None = None):
        if not hasattr(estimator, "predict_proba"):
            raise TypeError("Model must support predict_proba().")
        self.estimator = estimator

        # Prefer stored class_names, fall back to the estimator's string classes_.
        if class_names is None:
            classes = getattr(estimator, "classes_", None)
            if classes is not None and all(isinstance(c, str) for c in classes):
                class_names = list(classes)
        self.class_names = [str(c) for c in class_names] if class_names is not None else None

    def __call__(self, batch: np.ndarray) -> np.ndarray:
        x = np.asarray(batch, dtype=np.float32).reshape(batch.shape[0], -1)
        return np.asarray(self.estimator.predict_proba(x), dtype=np.float32)


class TorchWindowModel:
    """Adapter for a torch module taking (B, T, C) and returning class logits."""

    def __init__(self, module: Any, *, device: str | None = None, softmax: bool = True):
        import torch

        self.device = torch.device(device) if device else torch.device("cpu")
        self.module = module.to(self.device)
        self.module.eval()
        self.softmax = softmax

    def __call__(self, batch: np.ndarray) -> np.ndarray:
        import torch

        with torch.no_grad():
            x = torch.as_tensor(np.asarray(batch, dtype=np.float32), device=self.device)
            out = self.module(x)
            if self.softmax:
                out = torch.softmax(out, dim=-1)
        return out.cpu().numpy().astype(np.float32, copy=False)


def _load_sklearn(path: Path) -> SklearnWindowModel:
    import joblib

    obj = joblib.load(path)
    if isinstance(obj, dict) and "model" in obj:
        return SklearnWindowModel(obj["model"], class_names=obj.get("class_names"))
    return SklearnWindowModel(obj)


def _load_torch_checkpoint(path: Path, device: str | None) -> TorchWindowModel:
    import torch

    from handedness.models.imu_cnn import HandednessCnn

    # PyTorch 2.6+ defaults to `weights_only=True`, so keep artifacts pickle-free.
    try:
        artifact = torch.load(path, map_location="cpu", weights_only=True)
    except TypeError:
        artifact = torch.load(path, map_location="cpu")

    if not isinstance(artifact, dict) or "state_dict" not in artifact:
        raise ValueError("checkpoint must be a dict with a 'state_dict' entry")

    model = HandednessCnn(
        channels=int(artifact.get("channels", 6)),
        num_classes=int(artifact.get("num_classes", len(DEFAULT_LABELS))),
        hidden_dim=int(artifact.get("hidden_dim", 64)),
    )
    model.load_state_dict(artifact["state_dict"])
    return TorchWindowModel(model, device=device)


def _load_torchscript(path: Path, device: str | None) -> TorchWindowModel:
    import torch

    module = torch.jit.load(str(path), map_location="cpu")
    return TorchWindowModel(module, device=device)


def load_window_model(path: str | Path, *, device: str | None = None) -> WindowModel:
    """Load a window model artifact, dispatching on the file suffix."""

    p = Path(path)
    if not p.is_file():
        raise ModelLoadError(f"Model artifact not found: {p}")

    suffix = p.suffix.lower()
    try:
        if suffix in _SKLEARN_SUFFIXES:
            model: WindowModel = _load_sklearn(p)
        elif suffix in _TORCH_SUFFIXES:
            model = _load_torch_checkpoint(p, device)
        elif suffix in _TORCHSCRIPT_SUFFIXES:
            model = _load_torchscript(p, device)
        else:
            raise ModelLoadError(f"Unsupported model artifact {p.name!r}")
    except ModelLoadError:
        raise
    except Exception as e:
        raise ModelLoadError(f"Could not load model artifact {p}: {e}") from e

    logger.info("Loaded model artifact %s", p)
    return model


class HandednessClassifier:
    def __init__(
        self,
        model: WindowModel,
        labels: LabelSet | Sequence[str],
        *,
        window_size: int = 120,
        channel_count: int = 6,
    ):
        self.model = model
        self.labels = labels if isinstance(labels, LabelSet) else LabelSet(labels=tuple(labels))
        self.window_size = int(window_size)
        self.channel_count = int(channel_count)

    @classmethod
    def load(
        cls,
        model_path: str | Path,
        metadata_path: str | Path | Mapping[str, Any] | None = None,
        *,
        fallback_labels: Sequence[str] | None = DEFAULT_LABELS,
        window_size: int = 120,
        channel_count: int = 6,
        device: str | None = None,
    ) -> "HandednessClassifier":
        model = load_window_model(model_path, device=device)
        if metadata_path is None:
            metadata_path = Path(model_path).with_name("metadata.json")
        labels = resolve_label_set(metadata_path, fallback=fallback_labels)

        model_classes = getattr(model, "class_names", None)
        if model_classes is not None and tuple(model_classes) != labels.labels:
            logger.warning(
                "Model class order %s differs from resolved labels %s (%s); using the resolved labels",
                list(model_classes),
                list(labels.labels),
                labels.origin,
            )
        return cls(model, labels, window_size=window_size, channel_count=channel_count)

    def classify(self, window: np.ndarray) -> ClassificationResult:
        x = np.asarray(window, dtype=np.float32)
        expected = (self.window_size, self.channel_count)
        assert x.shape == expected, f"Expected window shape {expected}, got {x.shape}"

        scores = np.asarray(self.model(x[np.newaxis, ...]), dtype=np.float32)
        assert scores.ndim == 2 and scores.shape[0] == 1, f"Expected scores shape (1, C), got {scores.shape}"
        scores = scores[0]

        # First maximal index wins ties; NaN scores never win.
        if np.isnan(scores).all():
            idx = 0
        else:
            idx = int(np.nanargmax(scores))
        return ClassificationResult(index=idx, label=self.labels.label_for(idx), confidences=scores)
