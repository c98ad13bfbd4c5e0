# smartsensors.ml._models.py

from typing import Sequence

import numpy as np
import torch
import torch.nn as nn
from sklearn.preprocessing import StandardScaler, LabelEncoder

from smartsensors.logging import get_logger
from ._classifiers import Classifier, NULL_LABEL

log = get_logger("ml.models")


class GestureMLP(nn.Module):
    def __init__(self, input_dim, output_dim, hidden=(64, 32), dropout=0.2):
        super(GestureMLP, self).__init__()
        layers = []
        prev = input_dim
        for width in hidden:
            layers += [
                nn.Linear(prev, width),
                nn.BatchNorm1d(width),
                nn.ReLU(),
                nn.Dropout(p=dropout),
            ]
            prev = width
        layers.append(nn.Linear(prev, output_dim))
        self.model = nn.Sequential(*layers)
        self.input_dim = input_dim
        self.output_dim = output_dim

    def forward(self, x):
        return self.model(x)


class MLPClassifier(Classifier):
    """
    Small feed-forward network for feature vectors.

    Features are standardized and labels encoded at fit time (same recipe as
    the offline trainer). With null rejection on, a prediction whose top
    softmax probability is below ``null_rejection_coeff`` (0..1) becomes 0.
    """

    def __init__(self, hidden: Sequence[int] = (64, 32), epochs: int = 100, batch_size: int = 32,
                 learning_rate: float = 1e-3, dropout: float = 0.2, use_null_rejection: bool = False,
                 null_rejection_coeff: float = 0.5, seed: int = 42, verbose: bool = False):
        super().__init__(use_null_rejection, null_rejection_coeff)
        self.hidden = tuple(int(h) for h in hidden)
        self.epochs = int(epochs)
        self.batch_size = int(batch_size)
        self.learning_rate = float(learning_rate)
        self.dropout = float(dropout)
        self.seed = int(seed)
        self.verbose = verbose
        self.scaler = None
        self.encoder = None
        self.model = None

    def fit(self, X, y):
        X, y = self._check_fit_inputs(X, y)
        torch.manual_seed(self.seed)

        self.scaler = StandardScaler()
        X_scaled = self.scaler.fit_transform(X).astype(np.float32)
        self.encoder = LabelEncoder()
        y_enc = self.encoder.fit_transform(y)
        self.class_labels = [int(c) for c in self.encoder.classes_]

        self.model = GestureMLP(X.shape[1], len(self.class_labels), hidden=self.hidden, dropout=self.dropout)
        criterion = nn.CrossEntropyLoss()
        optimizer = torch.optim.Adam(self.model.parameters(), lr=self.learning_rate)
        dataset = torch.utils.data.TensorDataset(
            torch.tensor(X_scaled, dtype=torch.float32),
            torch.tensor(y_enc, dtype=torch.long)
        )
        # BatchNorm needs at least two rows per batch
        drop_last = len(dataset) > self.batch_size and len(dataset) % self.batch_size == 1
        loader = torch.utils.data.DataLoader(dataset, batch_size=self.batch_size, shuffle=True, drop_last=drop_last)

        self.model.train()
        for epoch in range(self.epochs):
            total_loss = 0.0
            for batch_X, batch_y in loader:
                optimizer.zero_grad()
                loss = criterion(self.model(batch_X), batch_y)
                loss.backward()
                optimizer.step()
                total_loss += loss.item()
            if self.verbose:
                log.info("Epoch %d/%d | Loss: %.4f", epoch + 1, self.epochs, total_loss / len(loader))
        self.model.eval()
        self.trained = True
        return self

    def predict(self, x):
        if not self.trained:
            raise RuntimeError("MLPClassifier has not been trained")
        x = self.scaler.transform(np.asarray(x, dtype=np.float64).reshape(1, -1)).astype(np.float32)
        with torch.no_grad():
            logits = self.model(torch.tensor(x))
            probs = torch.softmax(logits, dim=1).numpy()[0]
        self.class_likelihoods = probs.astype(np.float64)
        k = int(np.argmax(probs))
        label = self.class_labels[k]
        if self.use_null_rejection and probs[k] < self.null_rejection_coeff:
            label = NULL_LABEL
        self.predicted_class_label = label
        return label
