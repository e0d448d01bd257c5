from srtforge.core.srt import parse_srt
from srtforge.core.transcription import NO_SPEECH_TEXT, transcripts_to_blocks, transcripts_to_srt


def test_sentences_numbered_across_documents():
    documents = [
        {"transcripts": [{"sentences": [
            {"text": "Hello", "begin_time": 100, "end_time": 900},
            {"text": "  ", "begin_time": 1000, "end_time": 1100},
        ]}]},
        {"transcripts": [{"sentences": [{"text": "World", "begin_time": 2000}]}]},
    ]
    blocks = transcripts_to_blocks(documents)
    assert [(b.number, b.text) for b in blocks] == [(1, "Hello"), (2, "World")]
    assert blocks[1].end_ms == 7000


def test_no_sentences_gives_placeholder():
    blocks = parse_srt(transcripts_to_srt([{"transcripts": []}]))
    assert len(blocks) == 1
    assert blocks[0].text == NO_SPEECH_TEXT
    assert (blocks[0].start_ms, blocks[0].end_ms) == (0, 5000)
