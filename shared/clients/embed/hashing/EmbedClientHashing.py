"""Deterministic in-process embedder based on feature hashing.

Each normalised word and word bigram is hashed into one of D buckets with a
signed weight, and the resulting vector is L2-normalised. Texts sharing vocabulary
get a high cosine similarity, which is enough for offline runs and tests.
"""

import hashlib
import re

import numpy as np

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _bucket(token: str, dimension: int) -> tuple[int, float]:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    sign = 1.0 if value & 1 else -1.0
    return (value >> 1) % dimension, sign


class EmbedClientHashing(EmbedClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._use_bigrams = self.get_config_val("BIGRAMS", default=True, val_type="bool")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Hashing"

    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="BIGRAMS", val_type="bool", default=True)]

    ##########################################
    ################# OTHER ##################
    ##########################################

    def embed_sync(self, text: str) -> list[float]:
        """Compute the hashed embedding of text without any validation."""
        tokens = _TOKEN_RE.findall(text.lower())
        features = list(tokens)
        if self._use_bigrams:
            features.extend(f"{a} {b}" for a, b in zip(tokens, tokens[1:]))

        vec = np.zeros(self.embed_dimension, dtype="float32")
        for feature in features:
            index, sign = _bucket(feature, self.embed_dimension)
            vec[index] += sign
        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec /= norm
        return vec.tolist()

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_sync(text) for text in texts]
