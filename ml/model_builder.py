"""
BaitGuard — Model Builder
Feed-forward presets for the neural backend, plus the train / evaluate /
predict helpers and the resource-vs-accuracy preset selector.

All presets end in a single sigmoid unit trained with binary cross-entropy.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import torch
from torch import nn
from torch.utils.data import DataLoader, TensorDataset

from ml.feature_extractor import FEATURE_SIZE

logger = logging.getLogger(__name__)

DEFAULT_PRESET = "balanced"
AUTO_PRESET = "auto"
DEFAULT_EPOCHS = 50
DEFAULT_BATCH_SIZE = 32
DEFAULT_VALIDATION_SPLIT = 0.2
MAX_EPOCHS = 200
DEFAULT_SEED = 42


@dataclass(frozen=True)
class ModelPreset:
    name: str
    description: str
    layers: tuple[tuple[str, float], ...]   # ("dense", units) | ("dropout", rate) | ("batch_norm", 0)
    optimizer: str = "adam"
    learning_rate: float = 0.001


# fmt: off
PRESETS: dict[str, ModelPreset] = {
    "simple": ModelPreset(
        "Simple Dense Network", "Fast 2-layer network for basic detection",
        (("dense", 32), ("dropout", 0.2), ("dense", 16), ("dense", 1)),
    ),
    "balanced": ModelPreset(
        "Balanced Network", "Good balance of accuracy and speed",
        (("dense", 64), ("dropout", 0.3), ("dense", 32), ("dropout", 0.2), ("dense", 16), ("dense", 1)),
    ),
    "deep": ModelPreset(
        "Deep Network", "High accuracy for complex patterns",
        (("dense", 128), ("batch_norm", 0), ("dropout", 0.3),
         ("dense", 64), ("batch_norm", 0), ("dropout", 0.3),
         ("dense", 32), ("dropout", 0.2), ("dense", 16), ("dense", 1)),
        learning_rate=0.0005,
    ),
    "lightweight": ModelPreset(
        "Lightweight Network", "Minimal resource usage for constrained hosts",
        (("dense", 16), ("dropout", 0.1), ("dense", 8), ("dense", 1)),
        optimizer="sgd", learning_rate=0.01,
    ),
}
# fmt: on

PRESET_ALIASES = {"complex": "deep"}


class UnknownPresetError(KeyError):
    pass


@dataclass
class TrainingResult:
    final_loss: float
    final_accuracy: float
    val_loss: float | None = None
    val_accuracy: float | None = None
    epochs: int = 0
    sample_count: int = 0
    history: list[dict] = field(default_factory=list)


@dataclass
class ConfigChoice:
    recommended: str
    preset: ModelPreset
    reasoning: str


def resolve_preset(name: str | None) -> str:
    key = PRESET_ALIASES.get(name or DEFAULT_PRESET, name or DEFAULT_PRESET)
    if key not in PRESETS:
        raise UnknownPresetError(f"Model preset '{name}' not found")
    return key


def build_model(preset: str = DEFAULT_PRESET, input_size: int = FEATURE_SIZE) -> nn.Sequential:
    config = PRESETS[resolve_preset(preset)]
    modules: list[nn.Module] = []
    width = input_size
    last = len(config.layers) - 1
    for i, (kind, value) in enumerate(config.layers):
        if kind == "dense":
            units = int(value)
            modules.append(nn.Linear(width, units))
            modules.append(nn.Sigmoid() if i == last else nn.ReLU())
            width = units
        elif kind == "dropout":
            modules.append(nn.Dropout(float(value)))
        elif kind == "batch_norm":
            modules.append(nn.BatchNorm1d(width, momentum=0.01, eps=0.001))
    return nn.Sequential(*modules)


def estimate_params(preset: str, input_size: int = FEATURE_SIZE) -> int:
    """Dense weights + biases only, the figure the selector reasons about."""
    params, last = 0, input_size
    for kind, value in PRESETS[resolve_preset(preset)].layers:
        if kind == "dense":
            params += (last + 1) * int(value)
            last = int(value)
    return params


def count_params(model: nn.Module) -> int:
    return sum(p.numel() for p in model.parameters())


def select_optimal_config(
    max_params: float = math.inf,
    max_layers: float = math.inf,
    prioritize_speed: bool = False,
    prioritize_accuracy: bool = False,
) -> ConfigChoice:
    """Pick the preset with the best tradeoff score under the given constraints."""
    best, best_score = DEFAULT_PRESET, 0.0
    for key, preset in PRESETS.items():
        params = estimate_params(key)
        layers = len(preset.layers)
        if params > max_params or layers > max_layers:
            continue

        if prioritize_speed:
            score = (1 / max(1, params / 1000)) * 0.6 + (1 / max(1, layers / 3)) * 0.4
        elif prioritize_accuracy:
            score = (params / 10000) * 0.6 + (layers / 8) * 0.4
        else:
            score = (params / 5000) * 0.3 + (layers / 6) * 0.3 + (0.4 if key == DEFAULT_PRESET else 0.0)

        if score > best_score:
            best, best_score = key, score

    if prioritize_speed:
        reasons = ["Optimized for fast inference"]
    elif prioritize_accuracy:
        reasons = ["Optimized for high accuracy"]
    else:
        reasons = ["Balanced performance and speed"]
    reasons.append(f"{len(PRESETS[best].layers)} layers")
    reasons.append(f"~{estimate_params(best)} parameters")
    return ConfigChoice(recommended=best, preset=PRESETS[best], reasoning=", ".join(reasons))


def choose_preset(
    preset: str,
    max_params: int = 0,
    max_layers: int = 0,
    prioritize: str = "balanced",
) -> str:
    """Resolve a configured preset name; "auto" runs the selector, 0 means no limit."""
    if preset != AUTO_PRESET:
        return resolve_preset(preset)
    choice = select_optimal_config(
        max_params=max_params or math.inf,
        max_layers=max_layers or math.inf,
        prioritize_speed=prioritize == "speed",
        prioritize_accuracy=prioritize == "accuracy",
    )
    logger.info("Auto-selected model preset %s (%s)", choice.recommended, choice.reasoning)
    return choice.recommended


def _has_batch_norm(model: nn.Module) -> bool:
    return any(isinstance(m, nn.BatchNorm1d) for m in model.modules())


def _make_optimizer(model: nn.Module, preset: str) -> torch.optim.Optimizer:
    config = PRESETS[resolve_preset(preset)]
    if config.optimizer == "sgd":
        return torch.optim.SGD(model.parameters(), lr=config.learning_rate)
    return torch.optim.Adam(model.parameters(), lr=config.learning_rate)


def _split(features, labels, validation_split: float, seed: int):
    n = len(features)
    n_val = int(n * validation_split)
    if validation_split <= 0 or n_val < 1 or n - n_val < 2:
        return features, labels, [], []
    from sklearn.model_selection import train_test_split
    x_train, x_val, y_train, y_val = train_test_split(
        features, labels, test_size=n_val, random_state=seed, shuffle=True,
    )
    return x_train, y_train, x_val, y_val


def train_model(
    model: nn.Module,
    features: list[list[float]],
    labels: list[float],
    preset: str = DEFAULT_PRESET,
    epochs: int = DEFAULT_EPOCHS,
    batch_size: int = DEFAULT_BATCH_SIZE,
    validation_split: float = DEFAULT_VALIDATION_SPLIT,
    seed: int = DEFAULT_SEED,
) -> TrainingResult:
    """
    Fit `model` in place on a fixed, seeded train/validation split.
    Callers that need snapshot isolation pass a fresh or copied model.
    """
    if not features:
        raise ValueError("Cannot train on an empty dataset")
    if len(features) != len(labels):
        raise ValueError(f"features/labels length mismatch: {len(features)} != {len(labels)}")
    epochs = max(1, min(int(epochs), MAX_EPOCHS))

    torch.manual_seed(seed)
    x_train, y_train, x_val, y_val = _split(features, labels, validation_split, seed)

    dataset = TensorDataset(
        torch.tensor(x_train, dtype=torch.float32),
        torch.tensor(y_train, dtype=torch.float32).unsqueeze(1),
    )
    generator = torch.Generator().manual_seed(seed)
    loader = DataLoader(dataset, batch_size=batch_size, shuffle=True, generator=generator)
    skip_singletons = _has_batch_norm(model)

    optimizer = _make_optimizer(model, preset)
    loss_fn = nn.BCELoss()
    history: list[dict] = []
    epoch_loss, epoch_acc = 0.0, 0.0

    for epoch in range(1, epochs + 1):
        model.train()
        total_loss, correct, seen = 0.0, 0, 0
        for xb, yb in loader:
            if skip_singletons and len(xb) < 2:
                continue
            optimizer.zero_grad()
            out = model(xb)
            loss = loss_fn(out, yb)
            loss.backward()
            optimizer.step()
            total_loss += loss.item() * len(xb)
            correct += ((out >= 0.5).float() == yb).sum().item()
            seen += len(xb)

        if seen:
            epoch_loss, epoch_acc = total_loss / seen, correct / seen
        history.append({"epoch": epoch, "loss": epoch_loss, "accuracy": epoch_acc})
        if epoch % 10 == 0 or epoch == epochs:
            logger.debug("Epoch %d/%d | loss=%.4f | acc=%.3f", epoch, epochs, epoch_loss, epoch_acc)

    result = TrainingResult(
        final_loss=epoch_loss,
        final_accuracy=epoch_acc,
        epochs=epochs,
        sample_count=len(features),
        history=history,
    )
    if x_val:
        metrics = evaluate_model(model, x_val, y_val)
        result.val_loss = metrics["loss"]
        result.val_accuracy = metrics["accuracy"]

    logger.info(
        "Trained on %d samples for %d epochs | loss=%.4f | acc=%.3f",
        len(features), epochs, result.final_loss, result.final_accuracy,
    )
    return result


def predict(model: nn.Module, features: list[list[float]]) -> list[float]:
    model.eval()
    with torch.no_grad():
        out = model(torch.tensor(features, dtype=torch.float32))
    return [float(v) for v in out.squeeze(1).tolist()]


def evaluate_model(
    model: nn.Module,
    features: list[list[float]],
    labels: list[float],
    threshold: float = 0.5,
) -> dict:
    """Loss plus precision / recall / F1 / confusion matrix at `threshold`."""
    from sklearn.metrics import accuracy_score, confusion_matrix, f1_score, precision_score, recall_score

    if not features:
        raise ValueError("Cannot evaluate on an empty dataset")
    model.eval()
    with torch.no_grad():
        x = torch.tensor(features, dtype=torch.float32)
        y = torch.tensor(labels, dtype=torch.float32).unsqueeze(1)
        out = model(x)
        loss = nn.BCELoss()(out, y).item()

    y_true = [int(round(l)) for l in labels]
    y_pred = [1 if p >= threshold else 0 for p in out.squeeze(1).tolist()]
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    return {
        "loss": loss,
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "precision": float(precision_score(y_true, y_pred, zero_division=0)),
        "recall": float(recall_score(y_true, y_pred, zero_division=0)),
        "f1": float(f1_score(y_true, y_pred, zero_division=0)),
        "confusion_matrix": {"tp": int(tp), "fp": int(fp), "tn": int(tn), "fn": int(fn)},
        "threshold": threshold,
        "sample_count": len(labels),
    }


def state_dict_to_json(model: nn.Module) -> dict[str, list]:
    return {key: tensor.detach().cpu().tolist() for key, tensor in model.state_dict().items()}


def state_dict_from_json(model: nn.Module, weights: dict[str, list]) -> nn.Module:
    reference = model.state_dict()
    state = {
        key: torch.tensor(value, dtype=reference[key].dtype)
        for key, value in weights.items()
        if key in reference
    }
    model.load_state_dict(state)
    return model
