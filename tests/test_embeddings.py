"""
Tests for tokenization and the deterministic pseudo embeddings.

Run:
    python -m pytest tests/ -v --tb=short
"""

import numpy as np
import pytest

from embeddings import (
    EMBEDDING_DIM,
    count_words,
    generate_embedding,
    text_seed,
    token_index,
    tokenize,
)


class TestGenerateEmbedding:

    @pytest.mark.parametrize("text", ["hello", "world", "", "naïve", "The"])
    def test_same_text_same_vector(self, text):
        assert generate_embedding(text) == generate_embedding(text)

    def test_fixed_length(self):
        assert len(generate_embedding("fox")) == EMBEDDING_DIM
        assert len(generate_embedding("fox", dim=3)) == 3

    def test_empty_text_uses_seed_zero(self):
        vec = generate_embedding("")
        expected = np.random.default_rng(0).standard_normal(EMBEDDING_DIM)
        assert np.allclose(vec, expected)
        assert np.all(np.isfinite(vec))

    def test_seed_is_sum_of_code_points(self):
        assert text_seed("ab") == 97 + 98
        assert generate_embedding("ab") == generate_embedding("ba")

    def test_injectable_sampler(self):
        seeds = []

        def factory(seed):
            seeds.append(seed)
            return np.random.default_rng(seed)

        generate_embedding("hi", rng_factory=factory)
        assert seeds == [ord("h") + ord("i")]


class TestTokenize:

    def test_hello_world(self):
        tokens = tokenize("hello world", rng=np.random.default_rng(0))
        assert [t["id"] for t in tokens] == ["hello-0", "world-1"]
        assert [t["text"] for t in tokens] == ["hello", "world"]
        assert all(len(t["embedding"]) == 8 for t in tokens)

    def test_positions_in_unit_square(self):
        tokens = tokenize("a b c d", rng=np.random.default_rng(3))
        for token in tokens:
            assert 0.0 <= token["position"]["x"] < 1.0
            assert 0.0 <= token["position"]["y"] < 1.0

    def test_repeated_words_share_embedding(self):
        tokens = tokenize("dog cat dog")
        assert tokens[0]["embedding"] == tokens[2]["embedding"]
        assert tokens[0]["id"] != tokens[2]["id"]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
    def test_empty_input_yields_no_tokens(self, text):
        assert tokenize(text) == []

    def test_counts_and_index(self):
        assert count_words("  The quick  brown ") == 3
        tokens = tokenize("well-known fact")
        assert token_index(tokens[0]) == 0
        assert token_index(tokens[1]) == 1
