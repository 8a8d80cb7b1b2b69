from pathlib import Path

import pytest

from fpvscan.io.bandplan import BandMode, BandPlan


def test_band_mode_index_is_clamped() -> None:
    assert BandMode.from_index(-3) is BandMode.AUTO
    assert BandMode.from_index(2) is BandMode.BAND_2_4GHZ
    assert BandMode.from_index(99) is BandMode.BAND_5_8GHZ


def test_default_plans_are_sorted_and_in_band() -> None:
    plan = BandPlan()
    bounds = {
        BandMode.BAND_1_2GHZ: (1.0e9, 1.4e9),
        BandMode.BAND_2_4GHZ: (2.3e9, 2.6e9),
        BandMode.BAND_3_3GHZ: (3.2e9, 3.5e9),
        BandMode.BAND_5_8GHZ: (5.6e9, 6.0e9),
    }
    for mode, (low, high) in bounds.items():
        freqs = plan.frequencies_for(mode)
        assert freqs, mode
        assert list(freqs) == sorted(freqs)
        assert all(low <= f <= high for f in freqs)


def test_raceband_channels() -> None:
    freqs = BandPlan().frequencies_for(BandMode.BAND_5_8GHZ)
    assert freqs[0] == 5_658_000_000
    assert freqs[-1] == 5_917_000_000
    assert len(freqs) == 8


def test_auto_is_union_of_all_bands() -> None:
    plan = BandPlan()
    auto = plan.frequencies_for(BandMode.AUTO)
    union = set()
    for mode in (BandMode.BAND_1_2GHZ, BandMode.BAND_2_4GHZ, BandMode.BAND_3_3GHZ, BandMode.BAND_5_8GHZ):
        union.update(plan.frequencies_for(mode))
    assert set(auto) == union
    assert list(auto) == sorted(auto)


def test_frequencies_for_is_stable() -> None:
    plan = BandPlan()
    assert plan.frequencies_for(BandMode.BAND_2_4GHZ) == plan.frequencies_for(BandMode.BAND_2_4GHZ)


def test_label_for_known_and_unknown_frequency() -> None:
    plan = BandPlan()
    assert plan.label_for(5_806_000_000) == "5.8 GHz R5"
    assert plan.label_for(915_000_000) == "915.0 MHz"


def test_from_csv_skips_bad_rows(tmp_path: Path) -> None:
    csv_path = tmp_path / "channels.csv"
    csv_path.write_text(
        "mode,frequency_hz,label\n"
        "4,5800000000,custom\n"
        "BAND_2_4GHZ,2440000000,\n"
        "9,1000000000,bad-mode\n"
        "2,not-a-number,bad-freq\n"
        "2,2420000000,dup-a\n"
        "2,2420000000,dup-b\n",
        encoding="utf-8",
    )
    plan = BandPlan.from_csv(str(csv_path))
    assert plan.frequencies_for(BandMode.BAND_5_8GHZ) == (5_800_000_000,)
    assert plan.frequencies_for(BandMode.BAND_2_4GHZ) == (2_420_000_000, 2_440_000_000)
    assert plan.frequencies_for(BandMode.BAND_1_2GHZ) == ()
    assert plan.label_for(5_800_000_000) == "5.8 GHz custom"


def test_from_csv_without_path_uses_defaults() -> None:
    assert BandPlan.from_csv(None).frequencies_for(BandMode.AUTO) == BandPlan().frequencies_for(BandMode.AUTO)


def test_from_csv_nonexistent_path_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        BandPlan.from_csv(str(tmp_path / "missing.csv"))


def test_channels_for_matches_frequencies() -> None:
    plan = BandPlan()
    chans = plan.channels_for(BandMode.BAND_5_8GHZ)
    assert [c.label for c in chans][:2] == ["R1", "R2"]
    assert tuple(c.frequency_hz for c in chans) == plan.frequencies_for(BandMode.BAND_5_8GHZ)
    auto = plan.channels_for(BandMode.AUTO)
    assert tuple(c.frequency_hz for c in auto) == plan.frequencies_for(BandMode.AUTO)
