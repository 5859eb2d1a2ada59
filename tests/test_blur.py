import pytest
from PIL import Image

from wallpaper.blur import MAX_RADIUS, blur, blur_radius


@pytest.mark.parametrize(
    "percent, expected",
    [(1, 1), (4, 1), (10, 2), (50, 12), (100, MAX_RADIUS), (250, MAX_RADIUS)],
)
def test_blur_radius(percent, expected):
    assert blur_radius(percent) == expected


def test_zero_percent_returns_input_unchanged():
    image = Image.new("RGB", (10, 10), "blue")

    assert blur(image, 0) is image
    assert blur(image, -5) is image


def test_blur_preserves_size_and_alpha():
    image = Image.new("RGBA", (30, 20), (0, 0, 0, 0))
    for x in range(30):
        image.putpixel((x, 10), (255, 255, 255, x * 8))

    result = blur(image, 40)

    assert result.size == (30, 20)
    assert result.mode == "RGBA"
    assert result.getchannel("A").tobytes() == image.getchannel("A").tobytes()


def test_uniform_image_is_unchanged():
    image = Image.new("RGBA", (17, 9), (40, 80, 120, 255))

    result = blur(image, 100)

    assert result.tobytes() == image.tobytes()


def test_input_is_not_modified():
    image = Image.new("RGBA", (11, 11), (0, 0, 0, 255))
    image.putpixel((5, 5), (255, 255, 255, 255))
    before = image.tobytes()

    blur(image, 50)

    assert image.tobytes() == before


def test_single_bright_pixel_spreads_symmetrically():
    image = Image.new("RGBA", (11, 11), (0, 0, 0, 255))
    image.putpixel((5, 5), (255, 255, 255, 255))

    result = blur(image, 4)  # radius 1

    centre = result.getpixel((5, 5))[0]
    neighbours = {
        result.getpixel((4, 5))[0],
        result.getpixel((6, 5))[0],
        result.getpixel((5, 4))[0],
        result.getpixel((5, 6))[0],
    }
    assert 0 < centre < 255
    assert len(neighbours) == 1
    assert 0 < neighbours.pop() < centre
    assert result.getpixel((0, 0))[:3] == (0, 0, 0)


def test_rgb_input_becomes_rgba():
    result = blur(Image.new("RGB", (5, 3), "white"), 60)

    assert result.mode == "RGBA"
    assert result.getpixel((0, 0)) == (255, 255, 255, 255)


def test_radius_larger_than_image():
    image = Image.new("RGBA", (1, 1), (9, 8, 7, 255))

    assert blur(image, 100).getpixel((0, 0)) == (9, 8, 7, 255)
