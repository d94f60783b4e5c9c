import pytest

from textile.errors import ConfigurationError
from textile.ir.access import AccessSet
from textile.ir.lifetime import HistoryRange, PersistentRange, TransientRange, mask_passes, span_mask
from textile.ir.texture import FixedTextureSpec, TextureConfig, TextureFormat
from textile.planner.liveness import compute_lifetimes, history_lifetime, transient_lifetime
from textile.planner.options import TextileCapabilities


CAPS = TextileCapabilities()


def _table(total, reads=None, writes=None):
    reads = reads or {}
    writes = writes or {}
    return tuple(
        AccessSet(
            reads=frozenset(n for n, ps in reads.items() if i in ps),
            writes=frozenset(n for n, ps in writes.items() if i in ps),
        )
        for i in range(total)
    )


def test_span_mask():
    assert span_mask(0, 2) == 0b111
    assert span_mask(3, 5) == 0b111000
    assert span_mask(2, 1) == 0
    assert mask_passes(0b101001) == [0, 3, 5]


def test_transient_range_covers_every_access():
    table = _table(8, reads={"transient_a": {5}}, writes={"transient_a": {2, 3}})
    lt = transient_lifetime("transient_a", table)
    assert lt == TransientRange(first=2, last=5)
    for i, acc in enumerate(table):
        if acc.touches("transient_a"):
            assert i in lt
    assert 1 not in lt and 6 not in lt


def test_unused_transient_is_an_error():
    with pytest.raises(ConfigurationError, match="never read or written"):
        transient_lifetime("transient_a", _table(3))


def test_history_wraparound():
    table = _table(10, reads={"history_a": {2}}, writes={"history_a": {7}})
    lt = history_lifetime("history_a", table)
    assert lt == HistoryRange(last_read=2, first_write=7, total=10)
    assert not lt.fully_live
    assert mask_passes(lt.live_mask()) == [0, 1, 2, 7, 8, 9]
    for p in (3, 4, 5, 6):
        assert p not in lt


def test_history_reads_after_first_write_do_not_extend_last_read():
    table = _table(10, reads={"history_a": {2, 8}}, writes={"history_a": {7}})
    assert history_lifetime("history_a", table).last_read == 2


def test_history_read_and_write_in_same_pass_is_fully_live():
    table = _table(5, reads={"history_a": {3}}, writes={"history_a": {3}})
    lt = history_lifetime("history_a", table)
    assert lt.fully_live
    assert mask_passes(lt.live_mask()) == [0, 1, 2, 3, 4]


def test_history_adjacent_spans_are_fully_live():
    lt = HistoryRange(last_read=3, first_write=4, total=6)
    assert lt.fully_live
    assert all(p in lt for p in range(6))


def test_history_defaults_without_accesses():
    lt = history_lifetime("history_a", _table(4))
    assert lt == HistoryRange(last_read=0, first_write=3, total=4)
    assert mask_passes(lt.live_mask()) == [0, 3]


def test_history_with_zero_passes():
    lt = history_lifetime("history_a", ())
    assert lt.fully_live
    assert lt.live_mask() == 0


def test_compute_lifetimes_keeps_declaration_order():
    textures = TextureConfig(
        screen={"transient_b": TextureFormat.RGBA8, "history_a": TextureFormat.RGBA8},
        fixed={"persistent_lut": FixedTextureSpec(32, 16, TextureFormat.R8)},
    )
    table = _table(3, reads={"transient_b": {1}, "persistent_lut": {2}}, writes={"transient_b": {0}})
    lifetimes = compute_lifetimes(table, textures, CAPS)
    assert list(lifetimes) == ["transient_b", "history_a", "persistent_lut"]
    assert lifetimes["transient_b"] == TransientRange(0, 1)
    assert lifetimes["persistent_lut"] == PersistentRange(total=3, width=32, height=16)
    assert mask_passes(lifetimes["persistent_lut"].live_mask()) == [0, 1, 2]


def test_undeclared_texture_is_an_error():
    textures = TextureConfig(screen={"transient_a": TextureFormat.RGBA8})
    table = _table(2, reads={"transient_a": {0}, "transient_ghost": {1}})
    with pytest.raises(ConfigurationError, match="transient_ghost"):
        compute_lifetimes(table, textures, CAPS)


def test_unknown_category_prefix_is_an_error():
    textures = TextureConfig(screen={"scratch_a": TextureFormat.RGBA8})
    with pytest.raises(ConfigurationError, match="no recognized category prefix"):
        compute_lifetimes(_table(1), textures, CAPS)


def test_category_must_match_texture_kind():
    screen_persistent = TextureConfig(screen={"persistent_a": TextureFormat.RGBA8})
    with pytest.raises(ConfigurationError, match="must be transient or history"):
        compute_lifetimes(_table(1), screen_persistent, CAPS)

    fixed_transient = TextureConfig(fixed={"transient_a": FixedTextureSpec(4, 4, TextureFormat.RGBA8)})
    with pytest.raises(ConfigurationError, match="must be persistent"):
        compute_lifetimes(_table(1, reads={"transient_a": {0}}), fixed_transient, CAPS)


def test_invalid_transient_range():
    with pytest.raises(ValueError, match="invalid transient range"):
        TransientRange(first=3, last=1)
