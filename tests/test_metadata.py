from dvmeta.metadata import (
    Level1Metadata,
    Level2Metadata,
    Level3Metadata,
    Level5Metadata,
    Level6Metadata,
)


def test_level5_offsets_order():
    l5 = Level5Metadata(
        active_area_left_offset=10,
        active_area_right_offset=20,
        active_area_top_offset=30,
        active_area_bottom_offset=40,
    )
    assert l5.offsets() == (10, 20, 30, 40)


def test_level5_default_offsets_are_zero():
    assert Level5Metadata().offsets() == (0, 0, 0, 0)


def test_level5_offsets_follow_mutation():
    l5 = Level5Metadata()
    l5.active_area_top_offset = 140
    l5.active_area_bottom_offset = 141
    assert l5.offsets() == (0, 0, 140, 141)


def test_level1_equality_and_fields():
    a = Level1Metadata(min_pq=0, max_pq=3079, avg_pq=1000)
    b = Level1Metadata(0, 3079, 1000)
    assert a == b
    assert a.max_pq == 3079


def test_level2_target_nits_defaults_to_none():
    l2 = Level2Metadata()
    assert l2.target_nits is None
    assert l2.ms_weight == 0


def test_level2_accepts_negative_ms_weight():
    l2 = Level2Metadata(target_nits=600, ms_weight=-1)
    assert l2.ms_weight == -1
    assert l2.target_nits == 600


def test_level3_fields():
    l3 = Level3Metadata(min_pq_offset=2048, max_pq_offset=2049, avg_pq_offset=2050)
    assert (l3.min_pq_offset, l3.max_pq_offset, l3.avg_pq_offset) == (2048, 2049, 2050)


def test_level6_from_source_values():
    l6 = Level6Metadata(
        max_display_mastering_luminance=1000,
        min_display_mastering_luminance=1,
        max_content_light_level=1000,
        max_frame_average_light_level=400,
    )
    assert l6 == Level6Metadata(1000, 1, 1000, 400)
    assert l6 != Level6Metadata()