"""SVG export of a coded grid as a printable paint-by-number template."""

from itertools import chain

import svg

from ..models import CellShape, ConversionResult, FilledSet
from .tessellation import Tessellation

OUTLINE_COLOR = "rgb(160,160,160)"
LABEL_COLOR = "rgb(60,60,60)"


def render_svg(
    result: ConversionResult,
    filled: FilledSet | None = None,
    show_labels: bool = True,
) -> str:
    """Convert a conversion result to an SVG string.

    Args:
        result: Coded grid to draw
        filled: Cells drawn in their palette color; all others are left
            white with their label
        show_labels: Whether to draw the code label inside unfilled cells

    Returns:
        SVG content as string
    """
    width = result.image_width
    height = result.image_height
    if not result.cells:
        # Return empty SVG if there is nothing to draw
        return svg.SVG(viewBox=svg.ViewBoxSpec(0, 0, max(width, 1), max(height, 1)), elements=[]).as_str()

    filled = filled or FilledSet()
    tessellation = Tessellation(result.grid_type, result.cell_size, width, height)
    palette = result.palette
    font_size = round(result.cell_size * 0.45, 2)

    elements: list[svg.Element] = [
        svg.Rect(x=0, y=0, width=width, height=height, fill="white"),
    ]

    for cell in result.cells:
        if cell.key in filled or palette.is_background(cell.code):
            r, g, b = palette[cell.code]
            fill = f"rgb({r},{g},{b})"
        else:
            fill = "white"

        if cell.shape == CellShape.CIRCLE:
            cx, cy = cell.centroid
            elements.append(
                svg.Circle(
                    cx=round(cx, 3),
                    cy=round(cy, 3),
                    r=round(cell.size / 2, 3),
                    fill=fill,
                    stroke=OUTLINE_COLOR,
                    stroke_width=0.5,
                )
            )
        else:
            points = [round(v, 3) for v in chain.from_iterable(tessellation.footprint_polygon(cell))]
            elements.append(
                svg.Polygon(
                    points=points,  # type: ignore[arg-type]
                    fill=fill,
                    stroke=OUTLINE_COLOR,
                    stroke_width=0.5,
                )
            )

        label = palette.label(cell.code)
        if show_labels and label and cell.key not in filled:
            cx, cy = cell.centroid
            elements.append(
                svg.Text(
                    x=round(cx, 3),
                    y=round(cy, 3),
                    text=label,
                    font_size=font_size,
                    font_family="sans-serif",
                    text_anchor="middle",
                    dominant_baseline="central",
                    fill=LABEL_COLOR,
                )
            )

    # Clip to the image; boundary cells overhang it
    final_svg = svg.SVG(
        width=width,
        height=height,
        viewBox=svg.ViewBoxSpec(0, 0, width, height),
        elements=elements,
    )
    return final_svg.as_str()


def palette_legend(result: ConversionResult) -> "list[tuple[str, str, int]]":
    """(label, hex color, cell count) for every labelled code, in code order."""
    counts = result.code_counts()
    return [
        (result.palette.label(code), color.hex, counts.get(code, 0))
        for code, color in enumerate(result.palette)
        if not result.palette.is_background(code)
    ]
