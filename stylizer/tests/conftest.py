# -*- coding: utf-8 -*-
import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def test_png_path(tmp_path):
    img = np.random.randint(0, 256, size=(32, 32, 3)).astype(np.uint8)
    path = str(tmp_path / "test.png")
    Image.fromarray(img).save(path)
    return path
