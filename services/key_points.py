"""
Key point extraction
Ranks summary sentences with a pluggable scoring strategy
"""
import math
import re
from collections import Counter
from typing import Dict, List, Protocol, Sequence

from .captions_format import split_sentences

WORD = re.compile(r"[a-z0-9']+")

STOPWORDS = frozenset("""
a about above after again against all am an and any are as at be because been before being
below between both but by can could did do does doing down during each few for from further
had has have having he her here hers him his how i if in into is it its itself just me more
most my no nor not now of off on once only or other our ours out over own same she should so
some such than that the their theirs them then there these they this those through to too
under until up very was we were what when where which while who whom why will with would you
your yours also like really going get got know think thing things okay yeah um uh
""".split())


def tokenize(sentence: str) -> List[str]:
    return [w for w in WORD.findall(sentence.lower()) if w not in STOPWORDS and len(w) > 1]


class SentenceScorer(Protocol):
    def score(self, sentences: Sequence[str]) -> List[float]:
        ...


class TermFrequencyScorer:
    """Sum of in-document term frequencies, normalised by sentence length"""

    name = "tf"

    def score(self, sentences: Sequence[str]) -> List[float]:
        tokens = [tokenize(s) for s in sentences]
        freq = Counter(t for toks in tokens for t in toks)
        return [sum(freq[t] for t in toks) / len(toks) if toks else 0.0 for toks in tokens]


class TfIdfScorer:
    """Each sentence is a document; rare-but-repeated terms weigh more"""

    name = "tfidf"

    def score(self, sentences: Sequence[str]) -> List[float]:
        tokens = [tokenize(s) for s in sentences]
        n = len(tokens)
        doc_freq = Counter(t for toks in tokens for t in set(toks))
        corpus_freq = Counter(t for toks in tokens for t in toks)
        idf = {t: math.log((1 + n) / (1 + df)) + 1.0 for t, df in doc_freq.items()}
        return [
            sum(corpus_freq[t] * idf[t] for t in toks) / len(toks) if toks else 0.0
            for toks in tokens
        ]


SCORERS: Dict[str, type] = {
    TermFrequencyScorer.name: TermFrequencyScorer,
    TfIdfScorer.name: TfIdfScorer,
}


def get_scorer(name: str) -> SentenceScorer:
    try:
        return SCORERS[name]()
    except KeyError:
        raise ValueError(f"Unknown key point scorer '{name}', expected one of {sorted(SCORERS)}")


def extract_key_points(text: str, top_k: int = 5, scorer: SentenceScorer = None) -> List[str]:
    """Top-K sentences by score, ties broken by original order; pure function"""
    if top_k <= 0:
        return []
    sentences = _unique(split_sentences(text))
    if not sentences:
        return []
    scores = (scorer or TermFrequencyScorer()).score(sentences)
    ranked = sorted(range(len(sentences)), key=lambda i: (-scores[i], i))
    return [sentences[i] for i in ranked[:top_k]]


def _unique(sentences: List[str]) -> List[str]:
    seen = set()
    out = []
    for s in sentences:
        if s.lower() not in seen:
            seen.add(s.lower())
            out.append(s)
    return out
