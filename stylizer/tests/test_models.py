# -*- coding: utf-8 -*-
import numpy as np
import pytest
import tensorflow as tf

from stylizer._errors import InvalidConfig
from stylizer._layers import InstanceNormalization, ConditionalInstanceNormalization
from stylizer._layers import ReflectionPadding2D, DeprocessStylizedImage
from stylizer._models import ConvBlock, ResidualBlock
from stylizer._models import build_transformer, build_style_predictor


def test_ConvBlock_output_shape():
    inpt = tf.keras.layers.Input((16, 16, 3))
    output = ConvBlock(8, 9)(inpt)
    assert list(output.shape) == [None, 16, 16, 8]


def test_ConvBlock_strided_and_upsampled_output_shapes():
    inpt = tf.keras.layers.Input((16, 16, 3))
    down = ConvBlock(8, 3, strides=2)(inpt)
    up = ConvBlock(4, 3, upsample=True)(down)
    assert list(down.shape) == [None, 8, 8, 8]
    assert list(up.shape) == [None, 16, 16, 4]


def test_ResidualBlock_output_shape():
    inpt = tf.keras.layers.Input((None, None, 5))
    mod = ResidualBlock(5)
    output = mod(inpt)

    assert list(inpt.shape) == list(output.shape)


def test_build_transformer_output_shape():
    transformer = build_transformer(downsample=8, num_residuals=1)
    assert list(transformer.input.shape) == list(transformer.output.shape)


def test_build_transformer_uses_custom_layers():
    single = build_transformer(downsample=8, num_residuals=1)
    multi = build_transformer(style_num=4, downsample=8, num_residuals=1)

    single_types = [type(l) for l in single.layers]
    multi_types = [type(l) for l in multi.layers]
    assert InstanceNormalization in single_types
    assert ConditionalInstanceNormalization not in single_types
    assert ConditionalInstanceNormalization in multi_types
    assert InstanceNormalization not in multi_types
    for types in [single_types, multi_types]:
        assert ReflectionPadding2D in types
        assert DeprocessStylizedImage in types


def test_build_transformer_sigmoid_output_range():
    transformer = build_transformer(input_shape=(32, 32, 3), style_num=3,
                                    downsample=8, num_residuals=1)
    test_in = np.random.uniform(0, 1, (2, 32, 32, 3)).astype(np.float32)
    test_out = transformer.predict(test_in, verbose=0)
    assert test_out.shape == (2, 32, 32, 3)
    assert (test_out >= 0).all()
    assert (test_out <= 1).all()


def test_build_transformer_tanh_output_range():
    transformer = build_transformer(input_shape=(32, 32, 3), downsample=8,
                                    num_residuals=1, activation="tanh")
    test_in = np.random.uniform(0, 1, (1, 32, 32, 3)).astype(np.float32)
    test_out = transformer.predict(test_in, verbose=0)
    assert (test_out >= 0).all()
    assert (test_out <= 255).all()


def test_build_transformer_with_bottleneck():
    transformer = build_transformer(style_num=4, bottleneck_dim=8,
                                    downsample=8, num_residuals=1)
    assert len(transformer.inputs) == 2

    content = np.random.uniform(0, 1, (2, 32, 24, 3)).astype(np.float32)
    bottleneck = np.random.normal(0, 1, (2, 8)).astype(np.float32)
    test_out = transformer.predict([content, bottleneck], verbose=0)
    assert test_out.shape == (2, 32, 24, 3)


def test_build_transformer_bad_activation():
    with pytest.raises(InvalidConfig):
        build_transformer(activation="relu")


def test_build_style_predictor_output_shape():
    predictor = build_style_predictor(bottleneck_dim=8, downsample=8)
    assert list(predictor.output.shape) == [None, 8]

    test_in = np.random.uniform(0, 1, (3, 32, 32, 3)).astype(np.float32)
    assert predictor.predict(test_in, verbose=0).shape == (3, 8)
