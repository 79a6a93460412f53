# -*- coding: utf-8 -*-

"""Top-level package for stylizer."""

__version__ = '0.1.0'


from stylizer._errors import InvalidPadding, ShapeError, InvalidConfig
from stylizer._layers import ReflectionPadding2D, InstanceNormalization
from stylizer._layers import ConditionalInstanceNormalization, DeprocessStylizedImage
from stylizer._layers import reflection_pad_2d, instance_norm
from stylizer._layers import conditional_instance_norm, deprocess
from stylizer._layers import custom_objects, serialize_layer, deserialize_layer
from stylizer._models import build_transformer, build_style_predictor
from stylizer._stylizer import Stylizer
