"""
Rebuild what a GIF player shows at a given frame.

Every call starts from an empty canvas and replays frames 0..index, so the
result for a frame never depends on later frames or on earlier calls.
"""
import enum

import PIL.Image


TRANSPARENT = (0, 0, 0, 0)


class Disposal(enum.IntEnum):
    UNSPECIFIED = 0
    NONE = 1
    RESTORE_BACKGROUND = 2
    RESTORE_PREVIOUS = 3


class CanvasBounds(enum.Enum):
    """
    Which rectangle the composited canvas covers.

    FRAME uses the target frame's own rectangle. That is only right when all
    frames share the same rectangle, which is the usual case. SCREEN uses
    the animation's logical screen.
    """
    FRAME = 'frame'
    SCREEN = 'screen'


def get_disposal(animation, index):
    if index < len(animation.disposal):
        return animation.disposal[index]
    return Disposal.NONE


def canvas_box(animation, index, bounds=CanvasBounds.FRAME):
    if bounds is CanvasBounds.SCREEN:
        width, height = animation.size
        return (0, 0, width, height)
    return animation.frames[index].box


def draw_over(dst, dst_box, frame):
    """
    Alpha-composite `frame` onto `dst`, whose top left corner sits at
    `dst_box[:2]` in screen coordinates. Anything outside `dst` is clipped.
    """
    left = max(dst_box[0], frame.box[0])
    top = max(dst_box[1], frame.box[1])
    right = min(dst_box[2], frame.box[2])
    bottom = min(dst_box[3], frame.box[3])
    if left >= right or top >= bottom:
        return
    frame_left, frame_top = frame.box[:2]
    dst.alpha_composite(
        frame.rgba,
        dest=(left - dst_box[0], top - dst_box[1]),
        source=(left - frame_left, top - frame_top, right - frame_left, bottom - frame_top),
    )


def composite(animation, index, bounds=CanvasBounds.FRAME):
    """
    Return the RGBA image visible at frame `index`.

    The disposal code of frame i decides how frame i itself is laid down:
    RESTORE_BACKGROUND wipes the whole canvas before drawing it, and
    RESTORE_PREVIOUS draws it and then lays the pre-draw canvas back on top.
    That restore is an alpha composite, not a copy, so the frame still shows
    wherever the canvas was transparent before it.
    """
    box = canvas_box(animation, index, bounds)
    canvas = PIL.Image.new('RGBA', (box[2] - box[0], box[3] - box[1]), TRANSPARENT)
    frames = animation.frames

    if index == 0:
        draw_over(canvas, box, frames[0])
        return canvas

    for i in range(index + 1):
        disposal = get_disposal(animation, i)
        if disposal == Disposal.RESTORE_BACKGROUND:
            canvas.paste(TRANSPARENT, (0, 0) + canvas.size)
            draw_over(canvas, box, frames[i])
        elif disposal == Disposal.RESTORE_PREVIOUS and i > 0:
            previous = canvas.copy()
            draw_over(canvas, box, frames[i])
            canvas.alpha_composite(previous)
        else:
            draw_over(canvas, box, frames[i])
    return canvas
