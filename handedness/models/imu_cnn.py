from __future__ import annotations

import torch
import torch.nn as nn


class HandednessCnn(nn.Module):
    """A small 1D CNN over raw IMU windows: (B, T, C) -> (B, num_classes) logits."""

    def __init__(self, channels: int = 6, num_classes: int = 3, hidden_dim: int = 64) -> None:
        super().__init__()

        self.features = nn.Sequential(
            nn.Conv1d(channels, hidden_dim, kernel_size=5, padding=2),
            nn.BatchNorm1d(hidden_dim),
            nn.ReLU(),
            nn.MaxPool1d(2),
            nn.Conv1d(hidden_dim, hidden_dim, kernel_size=5, padding=2),
            nn.BatchNorm1d(hidden_dim),
            nn.ReLU(),
            nn.AdaptiveAvgPool1d(1),
        )

        self.classifier = nn.Sequential(
            nn.Flatten(),
            nn.Dropout(0.2),
            nn.Linear(hidden_dim, num_classes),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x = x.transpose(1, 2)  # (B, C, T)
        return self.classifier(self.features(x))
