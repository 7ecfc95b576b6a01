from askdocs.prompting import (
    CONTEXT_DELIMITER,
    NO_CONTEXT_PROMPT,
    RetrievedChunk,
    build_grounded_prompt,
    build_summary_prompt,
)


def test_empty_chunks_use_no_context_prompt():
    prompt = build_grounded_prompt([])

    assert prompt == NO_CONTEXT_PROMPT
    assert "No relevant document content was found" in prompt
    assert "upload more documents" in prompt
    assert "rephrase" in prompt


def test_grounded_prompt_labels_and_orders_chunks():
    chunks = [
        RetrievedChunk(text="Second ranked text.", document_label="b.pdf", score=0.4),
        RetrievedChunk(text="First ranked text.", document_label="a.txt", score=0.9),
    ]

    prompt = build_grounded_prompt(chunks)

    expected_context = CONTEXT_DELIMITER.join(
        [
            "[Document: b.pdf]\nSecond ranked text.",
            "[Document: a.txt]\nFirst ranked text.",
        ]
    )
    assert expected_context in prompt
    assert prompt.index("b.pdf") < prompt.index("a.txt")
    assert "does not contain the answer" in prompt


def test_grounded_prompt_keeps_duplicates_and_full_text():
    long_text = "fact " * 2000
    chunk = RetrievedChunk(text=long_text, document_label="dup.txt", score=0.5)

    prompt = build_grounded_prompt([chunk, chunk])

    assert prompt.count("[Document: dup.txt]") == 2
    assert long_text in prompt


def test_summary_prompt_truncates_content():
    prompt = build_summary_prompt("  " + "a" * 50 + "b" * 50, max_chars=50)

    assert "a" * 50 in prompt
    assert "b" not in prompt.split("Document content:")[-1]
    assert "single short sentence" in prompt
