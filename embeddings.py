import numpy as np

EMBEDDING_DIM = 8


def text_seed(text):
    return sum(ord(char) for char in text)


def generate_embedding(text, dim=EMBEDDING_DIM, rng_factory=np.random.default_rng):
    """Pseudo embedding for a token, reproducible from its characters.

    The seed is the sum of the code points, so anagrams share a vector. That is
    acceptable for a visual toy and keeps identical tokens on the same point.
    """
    rng = rng_factory(text_seed(text or ""))
    return [float(v) for v in rng.standard_normal(int(dim))]


def split_words(text):
    return (text or "").strip().split()


def count_words(text):
    return len(split_words(text))


def tokenize(text, rng=None, dim=EMBEDDING_DIM):
    rng = rng if rng is not None else np.random.default_rng()
    tokens = []
    for i, word in enumerate(split_words(text)):
        x, y = rng.random(2)
        tokens.append(
            {
                "id": f"{word}-{i}",
                "text": word,
                "embedding": generate_embedding(word, dim=dim),
                "position": {"x": float(x), "y": float(y)},
            }
        )
    return tokens


def token_index(token):
    return int(token["id"].rsplit("-", 1)[1])
