from searchcore.services.normalizer import QueryToken, TokenNormalizer


def test_normalize_keeps_tokens_and_stems() -> None:
    normalizer = TokenNormalizer()

    terms = normalizer.normalize("The cats are Running!")

    assert set(terms) == {"cats", "cat", "running", "run"}


def test_normalize_drops_stopwords_and_single_characters() -> None:
    normalizer = TokenNormalizer()

    assert normalizer.normalize("a b of the x") == []
    assert normalizer.normalize("x y zebra") == ["zebra"]


def test_empty_and_whitespace_queries_yield_nothing() -> None:
    normalizer = TokenNormalizer()

    assert normalizer.normalize("") == []
    assert normalizer.normalize("   \t ") == []


def test_composed_and_decomposed_forms_match() -> None:
    normalizer = TokenNormalizer()

    composed = normalizer.normalize("Café crème")
    decomposed = normalizer.normalize("Café crème")

    assert composed != [] and set(composed) == set(decomposed)
    assert "café" in composed


def test_tokenize_splits_on_non_alphanumerics() -> None:
    normalizer = TokenNormalizer()

    assert normalizer.tokenize("hello_world, foo-bar 42") == ["hello", "world", "foo", "bar", "42"]


def test_analyze_reports_stem_only_when_different() -> None:
    normalizer = TokenNormalizer()

    analyzed = normalizer.analyze("paris cats cats")

    assert QueryToken(token="cats", stem="cat") in analyzed
    assert [t.token for t in analyzed].count("cats") == 1


def test_normalize_has_no_duplicates() -> None:
    normalizer = TokenNormalizer()

    terms = normalizer.normalize("run runs running run")

    assert len(terms) == len(set(terms))
