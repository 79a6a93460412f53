# -*- coding: utf-8 -*-
import numpy as np
from PIL import Image

from stylizer._errors import InvalidConfig


def _load_to_array(img):
    """
    input a file path, PIL image or numpy array;
    return a float32 RGB numpy array. uint8 inputs are rescaled
    to the unit interval
    """
    if isinstance(img, str):
        img = Image.open(img)
    if isinstance(img, Image.Image):
        img = np.array(img.convert("RGB"))
    img = np.asarray(img)
    if img.dtype == np.uint8:
        img = img.astype(np.float32)/255
    else:
        img = img.astype(np.float32)
    # grayscale -> RGB, and drop any alpha channel
    if img.ndim == 2:
        img = np.expand_dims(img, -1)
    if img.shape[-1] == 1:
        img = np.concatenate([img]*3, -1)
    return img[:,:,:3]


def _pad_to_multiple(img_arr, multiple=4):
    """
    Pad the bottom and right edges of an (H,W,C) array so the strided
    convolutions and upsampling in the transformer give back an image
    of the same size. Crop back to the original size afterwards.
    """
    H, W = img_arr.shape[:2]
    dh = (-H) % multiple
    dw = (-W) % multiple
    return np.pad(img_arr, [(0, dh), (0, dw), (0, 0)], mode="edge")


def _blend_bottlenecks(style_bottleneck, content_bottleneck, strength):
    """
    Interpolate between the style image's representation (strength=1)
    and the content image's own (strength=0)
    """
    if not 0 <= strength <= 1:
        raise InvalidConfig("strength should be between 0 and 1, got %s"
                            % strength)
    return strength*style_bottleneck + (1-strength)*content_bottleneck


def _predict_style_parameters(style_arr, style_model):
    """
    Run the style model on an (H,W,3) unit-interval array; return
    its bottleneck with a batch dimension of 1
    """
    return style_model.predict(np.expand_dims(style_arr, 0), verbose=0)


def _produce_stylized(content_arr, bottleneck, transformer, output_scale=255.):
    """
    Run the transformer on an (H,W,3) unit-interval content array and a
    style bottleneck; return an (H,W,3) array in pixel range
    """
    H, W = content_arr.shape[:2]
    padded = np.expand_dims(_pad_to_multiple(content_arr), 0)
    stylized = transformer.predict([padded, bottleneck], verbose=0)
    return output_scale*stylized[0,:H,:W,:]


def _to_image(arr):
    """
    Convert an (H,W,3) array in pixel range to a PIL Image
    """
    return Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))
