import pytest

from sheetscan.core.template_layout import (
    ID_BUBBLE_SCALE,
    get_template_layout,
    template_type_for,
)


class TestTemplateTypeFor:
    @pytest.mark.parametrize("count,expected", [
        (1, 20), (20, 20), (21, 50), (50, 50), (51, 100), (100, 100),
    ])
    def test_boundaries(self, count, expected):
        assert template_type_for(count) == expected


class TestMiniSheets:
    def test_20_question_constants(self):
        layout = get_template_layout(20)
        assert layout.template_type == 20
        assert layout.question_capacity == 20
        assert layout.frame_size_mm == (91.0, 107.0)
        assert layout.bubble_position(1, 0) == pytest.approx((13 / 91, 58 / 107))
        assert layout.bubble_position(11, 0) == pytest.approx((55.5 / 91, 58 / 107))
        assert layout.bubble_position(10, 3) == pytest.approx(((13 + 3 * 4.8) / 91, (58 + 9 * 4.5) / 107))
        assert layout.bubble_diameter_nx == pytest.approx(3.2 / 91)
        assert layout.bubble_diameter_ny == pytest.approx(3.2 / 107)

    def test_50_question_blocks(self):
        layout = get_template_layout(35)
        assert layout.template_type == 50
        assert layout.bubble_position(21, 0) == pytest.approx((13 / 91, 162 / 211))
        assert layout.bubble_position(41, 1) == pytest.approx(((55.5 + 4.8) / 91, 110 / 211))

    def test_id_grid_shared_by_mini_sheets(self):
        a = get_template_layout(20).id_grid
        b = get_template_layout(50).id_grid
        assert a.first_col_nx == b.first_col_nx == pytest.approx(11 / 91)
        assert a.first_row_ny == pytest.approx(15 / 107)
        assert b.first_row_ny == pytest.approx(15 / 211)


class TestFullPageSheet:
    def test_block_order_is_not_question_order(self):
        layout = get_template_layout(100)
        assert [b.start_q for b in layout.answer_blocks[:3]] == [41, 71, 1]

    def test_constants(self):
        layout = get_template_layout(100)
        assert layout.frame_size_mm == (197.0, 215.5)
        assert layout.bubble_position(41, 0) == pytest.approx((89.35 / 197, 51 / 215.5))
        assert layout.bubble_position(100, 3) == pytest.approx(((160.34 + 15) / 197, (161 + 9 * 4.8) / 215.5))
        assert layout.id_bubble_position(8, 9) == pytest.approx(((14.5 + 8 * 4.5) / 197, (46.5 + 9 * 4.8) / 215.5))

    def test_every_bubble_inside_frame(self):
        layout = get_template_layout(100)
        for _, _, nx, ny in layout.iter_answer_bubbles(100, 4):
            assert 0 < nx < 1 and 0 < ny < 1
        for _, _, nx, ny in layout.iter_id_bubbles():
            assert 0 < nx < 1 and 0 < ny < 1


class TestLayoutBehaviour:
    def test_cached_instance(self):
        assert get_template_layout(12) is get_template_layout(20)

    def test_unknown_question(self):
        with pytest.raises(ValueError):
            get_template_layout(20).bubble_position(21, 0)

    def test_iteration_counts(self):
        layout = get_template_layout(50)
        assert len(list(layout.iter_answer_bubbles(37, 5))) == 37 * 5
        assert len(list(layout.iter_id_bubbles())) == 90

    def test_page_mm_round_trip(self):
        layout = get_template_layout(20)
        assert layout.to_page_mm(0, 0) == (7.0, 19.0)
        assert layout.to_page_mm(1, 1) == pytest.approx((98.0, 126.0))

    def test_id_bubbles_are_smaller(self):
        assert ID_BUBBLE_SCALE == pytest.approx(3.5 / 3.8)
