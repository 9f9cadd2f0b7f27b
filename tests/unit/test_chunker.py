from string import ascii_letters

from orquel.config import ChunkingConfig
from orquel.ingest.chunker import (
    MarkdownAwareChunker,
    chunk_text,
    content_hash,
    deduplicate,
    find_break_point,
    normalize_text,
)
from orquel.types import SourceDescriptor


def _numbered_words(count: int) -> str:
    return " ".join(f"word{i}" for i in range(count))


def _numbered_sentences(count: int) -> str:
    return " ".join(f"Sentence {i} talks about topic {i}." for i in range(count))


def test_short_text_becomes_single_chunk() -> None:
    source = SourceDescriptor(title="T")

    chunks = chunk_text("Short text.", source)

    assert len(chunks) == 1
    assert chunks[0].text == "Short text."
    assert chunks[0].metadata.chunk_index == 0
    assert chunks[0].metadata.hash == content_hash("Short text.")
    assert chunks[0].id == f"T-0-{content_hash('Short text.')}"
    assert chunks[0].metadata.source is source


def test_short_circuit_uses_normalized_length() -> None:
    # 33 chars raw, 10 after collapsing whitespace.
    text = "  alpha" + " " * 20 + "beta  "

    chunks = chunk_text(text, SourceDescriptor(title="T"), ChunkingConfig(max_chunk_size=10))

    assert [chunk.text for chunk in chunks] == ["alpha beta"]


def test_empty_input_yields_one_empty_chunk() -> None:
    chunks = chunk_text("  \r\n\t ", SourceDescriptor(title="empty"))

    assert len(chunks) == 1
    assert chunks[0].text == ""


def test_whitespace_variants_share_a_hash_and_deduplicate() -> None:
    source = SourceDescriptor(title="T")
    crlf = chunk_text("Alpha beta.\r\nGamma delta.   \r\n", source)
    lf = chunk_text("Alpha beta.\nGamma delta.", source)

    assert crlf[0].metadata.hash == lf[0].metadata.hash
    assert len(deduplicate(crlf + lf)) == 1


def test_normalize_text_collapses_whitespace() -> None:
    raw = "  one\t\ttwo   three\r\n\r\n\r\n\r\nfour  "

    assert normalize_text(raw) == "one two three\n\nfour"


def test_rechunking_is_idempotent() -> None:
    config = ChunkingConfig(max_chunk_size=120, overlap=20)
    source = SourceDescriptor(title="doc")
    text = _numbered_sentences(30)

    first = chunk_text(text, source, config)
    second = chunk_text(text, source, config)

    assert [(c.id, c.text) for c in first] == [(c.id, c.text) for c in second]


def test_chunks_respect_size_bound() -> None:
    config = ChunkingConfig(max_chunk_size=200, overlap=40)
    text = _numbered_sentences(60) + "\n\n" + _numbered_words(300)

    chunks = chunk_text(text, SourceDescriptor(title="doc"), config)

    assert len(chunks) > 2
    assert all(len(chunk.text) <= 200 for chunk in chunks)


def test_overlong_token_is_hard_cut_at_window_boundary() -> None:
    # A single token with no break opportunity cannot be split on a boundary,
    # so it is cut at exactly max_chunk_size characters.
    token = ascii_letters * 10
    config = ChunkingConfig(max_chunk_size=100, overlap=10)

    chunks = chunk_text(token, SourceDescriptor(title="blob"), config)

    assert len(chunks) >= 2
    assert chunks[0].text == token[:100]
    assert all(len(chunk.text) <= 100 for chunk in chunks)


def test_hashes_are_unique_within_one_call() -> None:
    config = ChunkingConfig(max_chunk_size=200, overlap=50)
    text = "Data governance requires strict access control and encryption. " * 100

    chunks = chunk_text(text, SourceDescriptor(title="repeat"), config)

    hashes = [chunk.metadata.hash for chunk in chunks]
    assert len(hashes) == len(set(hashes))


def test_windows_prefer_sentence_boundaries() -> None:
    config = ChunkingConfig(max_chunk_size=200, overlap=0)

    chunks = chunk_text(_numbered_sentences(40), SourceDescriptor(title="doc"), config)

    assert all(chunk.text.endswith(".") for chunk in chunks[:-1])


def test_consecutive_windows_overlap() -> None:
    config = ChunkingConfig(max_chunk_size=100, overlap=30)

    chunks = chunk_text(_numbered_words(200), SourceDescriptor(title="doc"), config)

    assert len(chunks) > 2
    for previous, current in zip(chunks, chunks[1:]):
        assert current.text[:10] in previous.text


def test_overlap_larger_than_window_still_advances() -> None:
    config = ChunkingConfig(max_chunk_size=50, overlap=80)
    text = _numbered_words(40)

    chunks = chunk_text(text, SourceDescriptor(title="doc"), config)

    indexes = [chunk.metadata.chunk_index for chunk in chunks]
    assert indexes == sorted(indexes)
    assert chunks[-1].text.endswith("word39")


def test_find_break_point_falls_back_in_order() -> None:
    sentence = "a" * 80 + ". " + "b" * 18
    words = "a" * 60 + " " + "b" * 39
    solid = "c" * 100

    assert find_break_point(sentence, 0, 100) == 81
    assert find_break_point(words, 0, 100) == 60
    assert find_break_point(solid, 0, 100) == 100


def test_markdown_sections_are_kept_whole() -> None:
    text = (
        "# Intro\n" + "alpha " * 30 + "\n\n"
        "## Details\n" + "beta " * 30
    )
    config = ChunkingConfig(max_chunk_size=200, overlap=20)

    chunks = chunk_text(text, SourceDescriptor(title="guide", kind="md"), config)

    assert len(chunks) == 2
    assert chunks[0].text.startswith("# Intro")
    assert chunks[1].text.startswith("## Details")
    assert "beta" not in chunks[0].text


def test_markdown_preamble_and_oversized_sections() -> None:
    text = "Preamble line.\n# A\n" + _numbered_sentences(12) + "\n# B\nshort"
    config = ChunkingConfig(max_chunk_size=100, overlap=20)

    chunks = chunk_text(text, SourceDescriptor(title="guide", kind="md"), config)

    section_a = chunks[1:-1]
    assert chunks[0].text == "Preamble line."
    assert chunks[-1].text == "# B\nshort"
    assert len(section_a) > 1
    assert section_a[0].text.startswith("# A\nSentence 0")
    assert all(len(chunk.text) <= 100 for chunk in section_a)
    assert section_a[-1].text.endswith("about topic 11.")
    assert [chunk.metadata.chunk_index for chunk in chunks] == list(range(len(chunks)))


def test_markdown_headings_ignored_for_other_kinds() -> None:
    text = (
        "# Intro\n" + "alpha " * 30 + "\n\n"
        "## Details\n" + "beta " * 30
    )
    config = ChunkingConfig(max_chunk_size=200, overlap=20)

    chunks = chunk_text(text, SourceDescriptor(title="guide", kind="txt"), config)

    assert not chunks[1].text.startswith("## Details")


def test_markdown_headings_can_be_disabled() -> None:
    text = "# Intro\n" + "alpha " * 30 + "\n\n## Details\n" + "beta " * 30
    config = ChunkingConfig(max_chunk_size=200, overlap=20, respect_markdown_headings=False)

    chunks = MarkdownAwareChunker(config).chunk(text, SourceDescriptor(title="g", kind="md"))

    assert not chunks[1].text.startswith("## Details")


def test_duplicates_are_dropped_without_renumbering() -> None:
    section = "# Note\nThe same paragraph body."
    text = "\n\n".join([section, section, "# Other\nA different paragraph body."])
    config = ChunkingConfig(max_chunk_size=40, overlap=0)

    chunks = chunk_text(text, SourceDescriptor(title="notes", kind="md"), config)

    assert [chunk.metadata.chunk_index for chunk in chunks] == [0, 2]
    assert chunks[0].text == section
