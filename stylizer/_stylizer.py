# -*- coding: utf-8 -*-
import os
import time
import numpy as np
import tensorflow as tf
import matplotlib.pyplot as plt
import yaml
from tqdm import tqdm

from stylizer._errors import InvalidConfig
from stylizer._layers import custom_objects, DeprocessStylizedImage
from stylizer._descriptions import summary_descriptions
from stylizer._util import _load_to_array, _blend_bottlenecks, _to_image
from stylizer._util import _predict_style_parameters, _produce_stylized

STYLE_MODEL_FILE = "style_predictor.keras"
TRANSFORMER_FILE = "transformer.keras"
CONFIG_FILE = "config.yml"


def _load_model(model):
    if isinstance(model, str):
        model = tf.keras.models.load_model(model, custom_objects=custom_objects,
                                           compile=False)
    return model


def _default_output_scale(transformer):
    """
    255 if the transformer emits sigmoid output in [0,1]; 1 if its last
    DeprocessStylizedImage layer already rescales tanh output to [0,255]
    """
    for layer in reversed(transformer.layers):
        if isinstance(layer, DeprocessStylizedImage):
            return 1. if layer.activation == "tanh" else 255.
    return 255.


class Stylizer(object):
    """
    Arbitrary style transfer by composing two models: a style predictor
    that maps a style image to a bottleneck representation, and a
    transformer that renders a content image given that bottleneck.
    """

    def __init__(self, logdir=None, style_model=None, transformer=None,
                 output_scale=None, warmup=True):
        """
        Pass a log directory from a previous save(), paths to saved
        models, or Keras models directly.

        :logdir: string; directory containing style_predictor.keras,
            transformer.keras and config.yml. also where TensorBoard
            summaries are written
        :style_model: string path or Keras model; supercedes the style
            predictor found in logdir
        :transformer: string path or Keras model taking [content, bottleneck];
            supercedes the transformer found in logdir
        :output_scale: multiply transformer output by this to get pixel
            values. defaults to 255 for sigmoid output, or 1 if the
            transformer ends in DeprocessStylizedImage("tanh")
        :warmup: run one stylization on a random image so the first real
            call isn't slowed down by graph tracing
        """
        config = {}
        if logdir is not None:
            config_path = os.path.join(logdir, CONFIG_FILE)
            if os.path.exists(config_path):
                with open(config_path) as f:
                    config = yaml.safe_load(f) or {}
            if style_model is None:
                style_model = os.path.join(logdir,
                                config.get("style_model", STYLE_MODEL_FILE))
            if transformer is None:
                transformer = os.path.join(logdir,
                                config.get("transformer", TRANSFORMER_FILE))
        if (style_model is None)|(transformer is None):
            raise InvalidConfig("need a logdir or both a style model and a "
                                "transformer")
        self.style_model = _load_model(style_model)
        self.transformer = _load_model(transformer)
        if output_scale is None:
            output_scale = config.get("output_scale",
                                      _default_output_scale(self.transformer))
        self.output_scale = float(output_scale)
        self.logdir = logdir
        self.step = 0

        # ------ BUILD SUMMARY WRITER ------
        if logdir is not None:
            self._summary_writer = tf.summary.create_file_writer(logdir,
                                            flush_millis=10000)
        else:
            self._summary_writer = None

        if warmup:
            self._warmup()

    def _warmup(self):
        img = np.random.uniform(0, 1, size=(240, 320, 3)).astype(np.float32)
        bottleneck = self.predict_style_parameters(img)
        self.produce_stylized(img, bottleneck)

    def predict_style_parameters(self, style_img):
        """
        Return the style bottleneck features for an image (path, PIL Image
        or array)
        """
        return _predict_style_parameters(_load_to_array(style_img),
                                         self.style_model)

    def produce_stylized(self, content_img, bottleneck):
        """
        Stylize a content image given bottleneck features for the style.
        Returns an (H,W,3) float array in pixel range.
        """
        return _produce_stylized(_load_to_array(content_img), bottleneck,
                                 self.transformer, self.output_scale)

    def _style_bottleneck(self, style_arr, content_arr, strength=None):
        bottleneck = _predict_style_parameters(style_arr, self.style_model)
        if strength is not None:
            bottleneck = _blend_bottlenecks(bottleneck,
                                _predict_style_parameters(content_arr,
                                                          self.style_model),
                                strength)
        return bottleneck

    def stylize(self, style_img, content_img, strength=None):
        """
        Render a content image in the style of a style image. Either can
        be a path, PIL Image or array.

        :strength: optional number in [0,1]; blends the style representation
            with the content image's own (1 is full style)

        Returns an (H,W,3) float array in pixel range
        """
        if strength is not None and not 0 <= strength <= 1:
            raise InvalidConfig("strength should be between 0 and 1, got %s"
                                % strength)
        start = time.time()
        style_arr = _load_to_array(style_img)
        content_arr = _load_to_array(content_img)
        bottleneck = self._style_bottleneck(style_arr, content_arr, strength)
        stylized = _produce_stylized(content_arr, bottleneck, self.transformer,
                                     self.output_scale)
        self._record(time.time() - start, stylized)
        return stylized

    def _record(self, elapsed, stylized):
        if self._summary_writer is None:
            return
        with self._summary_writer.as_default():
            tf.summary.scalar("stylization_seconds", elapsed, step=self.step,
                      description=summary_descriptions["stylization_seconds"])
            tf.summary.image("stylized_image",
                      np.expand_dims(np.clip(stylized/255, 0, 1), 0),
                      step=self.step,
                      description=summary_descriptions["stylized_image"])
        self._summary_writer.flush()
        self.step += 1

    def __call__(self, style_img, content_img, strength=None):
        """
        Same as stylize(), but returns a PIL Image
        """
        return _to_image(self.stylize(style_img, content_img, strength))

    def stylize_files(self, style_img, filepaths, outdir, strength=None,
                      progressbar=True):
        """
        Stylize a list of image files with a single style, saving the
        results as PNGs.

        :style_img: path, PIL Image or array
        :filepaths: list of paths to content images
        :outdir: directory to save to; created if it doesn't exist
        :strength: optional style strength in [0,1]
        :progressbar: whether to display a tqdm progress bar

        Returns a list of output paths
        """
        if strength is not None and not 0 <= strength <= 1:
            raise InvalidConfig("strength should be between 0 and 1, got %s"
                                % strength)
        os.makedirs(outdir, exist_ok=True)
        style_arr = _load_to_array(style_img)
        if strength is None:
            bottleneck = _predict_style_parameters(style_arr, self.style_model)

        if progressbar:
            iterator = tqdm(filepaths)
        else:
            iterator = filepaths

        outfiles = []
        for f in iterator:
            content_arr = _load_to_array(f)
            if strength is not None:
                bottleneck = self._style_bottleneck(style_arr, content_arr,
                                                    strength)
            stylized = _produce_stylized(content_arr, bottleneck,
                                         self.transformer, self.output_scale)
            outfile = os.path.join(outdir,
                        os.path.splitext(os.path.basename(f))[0] + ".png")
            _to_image(stylized).save(outfile)
            outfiles.append(outfile)
        return outfiles

    def save(self, logdir=None):
        """
        Save both models and a config.yml so the Stylizer can be rebuilt
        with Stylizer(logdir=...)
        """
        if logdir is None:
            logdir = self.logdir
        if logdir is None:
            raise InvalidConfig("no logdir to save to")
        os.makedirs(logdir, exist_ok=True)

        self.style_model.save(os.path.join(logdir, STYLE_MODEL_FILE))
        self.transformer.save(os.path.join(logdir, TRANSFORMER_FILE))
        config = {
                "style_model":STYLE_MODEL_FILE,
                "transformer":TRANSFORMER_FILE,
                "output_scale":self.output_scale
                }
        with open(os.path.join(logdir, CONFIG_FILE), "w") as f:
            yaml.dump(config, f, default_flow_style=False)

    def plot(self, style_img, content_img, strength=None):
        """
        Use matplotlib to draw the style image, content image, and
        stylized result side by side.
        """
        stylized = self(style_img, content_img, strength)

        plt.subplot(1,3,1)
        plt.imshow(_load_to_array(style_img))
        plt.axis("off")
        plt.title("style", fontsize=14)

        plt.subplot(1,3,2)
        plt.imshow(_load_to_array(content_img))
        plt.axis("off")
        plt.title("content", fontsize=14)

        plt.subplot(1,3,3)
        plt.imshow(stylized)
        plt.axis("off")
        plt.title("stylized", fontsize=14)
