import pytest

from bubble_reader.rows import cluster_rows, row_tolerance


@pytest.mark.parametrize("height, expected", [
    (100, 8.0),
    (1600, 8.0),
    (2000, 10.0),
    (4000, 20.0),
])
def test_tolerance_scales_with_height(height, expected):
    assert row_tolerance(height) == pytest.approx(expected)


def test_bubbles_within_tolerance_share_a_row(bubble):
    rows = cluster_rows([bubble(10, 100), bubble(50, 109)], image_height=2000)
    assert len(rows) == 1


def test_bubble_beyond_tolerance_starts_new_row(bubble):
    rows = cluster_rows([bubble(10, 100), bubble(50, 111)], image_height=2000)
    assert [[b.y for b in row] for row in rows] == [[100], [111]]


def test_compares_against_running_mean(bubble):
    # 100 and 108 average to 104, so 113 is still within 10 px
    rows = cluster_rows([bubble(10, 100), bubble(20, 108), bubble(30, 113)], 2000)
    assert len(rows) == 1
    # 100 alone: 113 is 13 px away
    rows = cluster_rows([bubble(10, 100), bubble(30, 113)], 2000)
    assert len(rows) == 2


def test_rows_are_ordered_top_to_bottom(bubble):
    unordered = [
        bubble(200, 300), bubble(10, 100), bubble(100, 200),
        bubble(100, 101), bubble(10, 301), bubble(200, 199),
    ]
    rows = cluster_rows(unordered, 1000)
    assert [sorted(round(b.y) for b in row) for row in rows] == [
        [100, 101], [199, 200], [300, 301],
    ]


def test_no_bubbles_no_rows():
    assert cluster_rows([], 1000) == []
