"""
                _layers.py

Custom Keras layers for the stylization network: reflection padding,
(conditional) instance normalization and output deprocessing.

Each layer is a thin wrapper around a pure tensor-to-tensor function
defined here as well, so the math can be tested without building a model.
"""
import numbers

import tensorflow as tf

from stylizer._errors import InvalidPadding, ShapeError, InvalidConfig

DEPROCESS_MODES = ("sigmoid", "tanh")
DIM_ORDERINGS = ("default", "channels_last", "channels_first")



def _shape_list(shape):
    return tf.TensorShape(shape).as_list()


def _is_shape_list(input_shape):
    """
    True if input_shape describes several inputs rather than one
    """
    if isinstance(input_shape, tf.TensorShape):
        return False
    return isinstance(input_shape, (list, tuple)) and len(input_shape) > 0 \
        and isinstance(input_shape[0], (list, tuple, tf.TensorShape))


def _as_float_tensor(x):
    x = tf.convert_to_tensor(x)
    if not x.dtype.is_floating:
        x = tf.cast(x, tf.float32)
    return x


def _resolve_axis(axis, ndim):
    resolved = axis if axis >= 0 else axis + ndim
    if resolved <= 0 or resolved >= ndim:
        raise InvalidConfig(
            "axis %s is out of range or is the batch axis for a rank-%s input"
            % (axis, ndim))
    return resolved


def _check_padding(size, pad, axis):
    if size is None:
        return
    if max(pad) > size - 1:
        raise InvalidPadding(
            "reflection padding %s along axis %s needs an extent of at least "
            "%s, but the input has %s" % (tuple(pad), axis, max(pad) + 1, size))



def normalize_padding(padding):
    """
    Turn a padding argument into ((top, bottom), (left, right)).

    :padding: None (one pixel all around), an int (same padding
        everywhere), two ints (symmetric height and width padding),
        or two pairs ((top, bottom), (left, right))
    """
    if padding is None:
        padding = 1
    if isinstance(padding, numbers.Integral):
        padding = ((padding, padding), (padding, padding))
    elif isinstance(padding, (list, tuple)):
        if len(padding) != 2:
            raise InvalidConfig(
                "padding should have 2 entries, got %s" % len(padding))
        if all(isinstance(p, numbers.Integral) for p in padding):
            padding = ((padding[0], padding[0]), (padding[1], padding[1]))
        else:
            for name, pair in zip(["height", "width"], padding):
                if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                    raise InvalidConfig(
                        "%s padding should be a pair, got %s" % (name, pair))
    else:
        raise InvalidConfig("can't interpret padding %r" % (padding,))

    for pair in padding:
        for p in pair:
            if isinstance(p, bool) or not isinstance(p, numbers.Integral):
                raise InvalidPadding("padding must be integers, got %r" % (p,))
            if p < 0:
                raise InvalidPadding("padding can't be negative, got %s" % p)
    return tuple(tuple(int(p) for p in pair) for pair in padding)


def _reflect_axis(x, axis, before, after):
    """
    Mirror-pad one axis by gathering reflected indices. Position j in
    [-before, n + after) reads (n-1) - |(n-1) - |j||, so -k maps to k
    and n-1+k maps to n-1-k; the edge pixel is not repeated.
    """
    if before == 0 and after == 0:
        return x
    size = x.shape[axis]
    if size is not None:
        _check_padding(size, (before, after), axis)
        n = size
    else:
        n = tf.shape(x)[axis]
        tf.debugging.assert_less_equal(
            max(before, after), n - 1,
            message="reflection padding exceeds input extent along axis %s" % axis)
    idx = tf.range(-before, n + after)
    idx = (n - 1) - tf.abs((n - 1) - tf.abs(idx))
    return tf.gather(x, idx, axis=axis)


def reflection_pad_2d(x, padding=((1, 1), (1, 1)), data_format="channels_last"):
    """
    Reflection-pad the spatial axes of a 4D tensor.

    :x: tensor shaped (batch, H, W, C), or (batch, C, H, W) for channels_first
    :padding: anything normalize_padding() accepts
    :data_format: "channels_last" or "channels_first"
    """
    x = tf.convert_to_tensor(x)
    if x.shape.rank != 4:
        raise ShapeError(
            "reflection padding expects a 4D tensor, got rank %s" % x.shape.rank)
    if data_format == "channels_first":
        axes = (2, 3)
    elif data_format == "channels_last":
        axes = (1, 2)
    else:
        raise InvalidConfig("unknown data format %r" % (data_format,))
    padding = normalize_padding(padding)

    # the two axes are independent, so the order doesn't matter
    for axis, (before, after) in zip(axes, padding):
        x = _reflect_axis(x, axis, before, after)
    return x


def _broadcast_param(param, ndim, axis, dtype):
    param = tf.cast(param, dtype)
    if param.shape.rank == 1:
        shape = [1] * ndim
        shape[axis] = -1
        return tf.reshape(param, shape)
    # per-sample parameters, (batch, channels)
    for i in range(1, ndim):
        if i != axis:
            param = tf.expand_dims(param, i)
    return param


def instance_norm(x, axis=-1, epsilon=1e-3, gamma=None, beta=None):
    """
    Instance normalization: standardize each channel of each sample
    over its remaining (spatial) axes. Note that epsilon is added to
    the standard deviation, not the variance.

    :x: input tensor; axis 0 is the batch axis
    :axis: channel axis
    :epsilon: added to the standard deviation
    :gamma: optional scale, (channels,) or (batch, channels)
    :beta: optional shift, (channels,) or (batch, channels)
    """
    x = _as_float_tensor(x)
    ndim = x.shape.rank
    axis = _resolve_axis(axis, ndim)
    reduction_axes = [i for i in range(1, ndim) if i != axis]

    mean, variance = tf.nn.moments(x, axes=reduction_axes, keepdims=True)
    normed = (x - mean) / (tf.sqrt(variance) + epsilon)

    if gamma is not None:
        normed = normed * _broadcast_param(gamma, ndim, axis, x.dtype)
    if beta is not None:
        normed = normed + _broadcast_param(beta, ndim, axis, x.dtype)
    return normed


def conditional_instance_norm(x, style_weights, gamma_table=None, beta_table=None,
                              axis=-1, epsilon=1e-3, style_num=None):
    """
    Instance normalization with scale and shift picked out of per-style
    tables. The effective parameters are style_weights . table, so a
    one-hot selector picks a single row.

    :x: input tensor; axis 0 is the batch axis
    :style_weights: selector, (style_num,) or per-sample (batch, style_num)
    :gamma_table: optional (style_num, channels) scale table
    :beta_table: optional (style_num, channels) shift table
    :axis: channel axis
    :epsilon: added to the standard deviation
    :style_num: optional number of styles the selector must cover
    """
    x = _as_float_tensor(x)
    style_weights = tf.cast(style_weights, x.dtype)
    if style_weights.shape.rank not in (1, 2):
        raise ShapeError("style selector should be 1D or 2D, got rank %s"
                         % style_weights.shape.rank)
    selected = style_weights.shape[-1]
    if None not in (style_num, selected) and selected != style_num:
        raise ShapeError("style selector has length %s but there are %s styles"
                         % (selected, style_num))

    def _select(table):
        if table is None:
            return None
        table = tf.cast(table, x.dtype)
        num_styles = table.shape[0]
        if None not in (num_styles, selected) and num_styles != selected:
            raise ShapeError(
                "style selector has length %s but the parameter table has "
                "%s styles" % (selected, num_styles))
        return tf.tensordot(style_weights, table, axes=1)

    return instance_norm(x, axis, epsilon, _select(gamma_table),
                         _select(beta_table))


def deprocess(x, mode="sigmoid"):
    """
    Map network output back to pixel range. "sigmoid" output is passed
    through unchanged; "tanh" output in [-1, 1] is rescaled to [0, 255].
    """
    if mode not in DEPROCESS_MODES:
        raise InvalidConfig("deprocess mode should be one of %s, got %r"
                            % (DEPROCESS_MODES, mode))
    x = _as_float_tensor(x)
    if mode == "tanh":
        return (x + 1.0) * 127.5
    return x




class ReflectionPadding2D(tf.keras.layers.Layer):
    """
    Pads height and width by mirroring the image across its border.
    """
    def __init__(self, padding=1, dim_ordering="default", **kwargs):
        """
        :padding: int, (height, width) or ((top, bottom), (left, right))
        :dim_ordering: "default"/"channels_last" for NHWC inputs, or
            "channels_first" for NCHW
        """
        super(ReflectionPadding2D, self).__init__(**kwargs)
        if dim_ordering not in DIM_ORDERINGS:
            raise InvalidConfig("dim_ordering should be one of %s, got %r"
                                % (DIM_ORDERINGS, dim_ordering))
        self.dim_ordering = dim_ordering
        self.padding = normalize_padding(padding)
        self.input_spec = tf.keras.layers.InputSpec(ndim=4)

    def _data_format(self):
        if self.dim_ordering == "channels_first":
            return "channels_first"
        return "channels_last"

    def _spatial_axes(self):
        if self.dim_ordering == "channels_first":
            return (2, 3)
        return (1, 2)

    def build(self, input_shape):
        shape = _shape_list(input_shape)
        for axis, pad in zip(self._spatial_axes(), self.padding):
            _check_padding(shape[axis], pad, axis)
        super(ReflectionPadding2D, self).build(input_shape)

    def compute_output_shape(self, input_shape):
        shape = _shape_list(input_shape)
        for axis, (before, after) in zip(self._spatial_axes(), self.padding):
            if shape[axis] is not None:
                shape[axis] += before + after
        return tuple(shape)

    def call(self, inputs):
        return reflection_pad_2d(inputs, self.padding, self._data_format())

    def get_config(self):
        config = {"padding": [list(p) for p in self.padding],
                  "dim_ordering": self.dim_ordering}
        base_config = super(ReflectionPadding2D, self).get_config()
        return dict(list(base_config.items()) + list(config.items()))



class InstanceNormalization(tf.keras.layers.Layer):
    """
    Instance Normalization, as described in

    "Instance Normalization: The Missing Ingredient for
    Fast Stylization" by Ulyanov, Vedaldi, and Lempitsky

    Statistics are computed per sample and per channel; axis picks
    the channel axis (default -1, channels last).
    """
    def __init__(self, axis=-1, epsilon=1e-3, center=True, scale=True,
                 beta_initializer="zeros", gamma_initializer="ones",
                 beta_regularizer=None, gamma_regularizer=None,
                 beta_constraint=None, gamma_constraint=None, **kwargs):
        super(InstanceNormalization, self).__init__(**kwargs)
        if isinstance(axis, bool) or not isinstance(axis, int) or axis == 0:
            raise InvalidConfig(
                "axis should be an integer channel axis other than the batch "
                "axis, got %r" % (axis,))
        self.axis = axis
        self.epsilon = epsilon
        self.center = center
        self.scale = scale
        self.beta_initializer = tf.keras.initializers.get(beta_initializer)
        self.gamma_initializer = tf.keras.initializers.get(gamma_initializer)
        self.beta_regularizer = tf.keras.regularizers.get(beta_regularizer)
        self.gamma_regularizer = tf.keras.regularizers.get(gamma_regularizer)
        self.beta_constraint = tf.keras.constraints.get(beta_constraint)
        self.gamma_constraint = tf.keras.constraints.get(gamma_constraint)
        self.gamma = None
        self.beta = None

    def _channel_dim(self, shape):
        axis = _resolve_axis(self.axis, len(shape))
        dim = shape[axis]
        if dim is None:
            raise ShapeError(
                "Axis %s of input tensor should have a defined dimension but "
                "the layer received an input with shape %s" % (axis, shape))
        return axis, dim

    def _add_params(self, shape):
        if self.scale:
            self.gamma = self.add_weight(name="gamma", shape=shape,
                                         initializer=self.gamma_initializer,
                                         regularizer=self.gamma_regularizer,
                                         constraint=self.gamma_constraint,
                                         trainable=True)
        if self.center:
            self.beta = self.add_weight(name="beta", shape=shape,
                                        initializer=self.beta_initializer,
                                        regularizer=self.beta_regularizer,
                                        constraint=self.beta_constraint,
                                        trainable=True)

    def build(self, input_shape):
        shape = _shape_list(input_shape)
        axis, dim = self._channel_dim(shape)
        self.input_spec = tf.keras.layers.InputSpec(ndim=len(shape),
                                                    axes={axis: dim})
        self._add_params((dim,))
        super(InstanceNormalization, self).build(input_shape)

    def compute_output_shape(self, input_shape):
        return input_shape

    def call(self, inputs):
        return instance_norm(inputs, self.axis, self.epsilon,
                             self.gamma, self.beta)

    def get_config(self):
        config = {
            "axis": self.axis,
            "epsilon": self.epsilon,
            "center": self.center,
            "scale": self.scale,
            "beta_initializer": tf.keras.initializers.serialize(self.beta_initializer),
            "gamma_initializer": tf.keras.initializers.serialize(self.gamma_initializer),
            "beta_regularizer": tf.keras.regularizers.serialize(self.beta_regularizer),
            "gamma_regularizer": tf.keras.regularizers.serialize(self.gamma_regularizer),
            "beta_constraint": tf.keras.constraints.serialize(self.beta_constraint),
            "gamma_constraint": tf.keras.constraints.serialize(self.gamma_constraint)
        }
        base_config = super(InstanceNormalization, self).get_config()
        return dict(list(base_config.items()) + list(config.items()))



def _first_style(shape, dtype=None):
    # one-hot selector for style 0
    return tf.one_hot(0, shape[0], dtype=dtype or tf.float32)


class ConditionalInstanceNormalization(InstanceNormalization):
    """
    Conditional instance normalization from Dumoulin, Shlens and
    Kudlur's "A Learned Representation For Artistic Style". gamma and
    beta are (style_num, channels) tables; a selector vector mixes
    their rows.

    Call on a single tensor to use the selector stored in the layer
    (one-hot on style 0 until changed), or on [tensor, selector] to
    supply a per-sample (batch, style_num) selector from the graph.
    """
    def __init__(self, style_num=1, **kwargs):
        super(ConditionalInstanceNormalization, self).__init__(**kwargs)
        if isinstance(style_num, bool) or not isinstance(style_num, int) \
                or style_num < 1:
            raise InvalidConfig("style_num should be a positive integer, got %r"
                                % (style_num,))
        self.style_num = style_num
        self.style_weights = None
        self._pending_style_weights = None

    def _check_selector(self, weights):
        weights = tf.cast(tf.convert_to_tensor(weights), tf.float32)
        if weights.shape.as_list() != [self.style_num]:
            raise ShapeError(
                "style selector should have shape (%s,), got %s"
                % (self.style_num, tuple(weights.shape.as_list())))
        return weights

    def set_style_weights(self, weights):
        """
        Set the selector used when the layer is called on a single tensor.

        :weights: length-style_num vector of weights over styles
        """
        weights = self._check_selector(weights)
        if self.style_weights is None:
            self._pending_style_weights = weights
        else:
            self.style_weights.assign(weights)

    def select_style(self, index):
        """
        Switch to a single style
        """
        if not 0 <= index < self.style_num:
            raise ShapeError("style index %s out of range for %s styles"
                             % (index, self.style_num))
        self.set_style_weights(tf.one_hot(index, self.style_num))

    def build(self, input_shape):
        if _is_shape_list(input_shape):
            shape, selector_shape = [_shape_list(s) for s in input_shape]
            if selector_shape[-1] is not None and selector_shape[-1] != self.style_num:
                raise ShapeError(
                    "style selector input has length %s but the layer has %s "
                    "styles" % (selector_shape[-1], self.style_num))
            axis, dim = self._channel_dim(shape)
        else:
            shape = _shape_list(input_shape)
            axis, dim = self._channel_dim(shape)
            self.input_spec = tf.keras.layers.InputSpec(ndim=len(shape),
                                                        axes={axis: dim})
        self._add_params((self.style_num, dim))
        self.style_weights = self.add_weight(name="style_weights",
                                             shape=(self.style_num,),
                                             initializer=_first_style,
                                             trainable=False)
        if self._pending_style_weights is not None:
            self.style_weights.assign(self._pending_style_weights)
            self._pending_style_weights = None
        self.built = True

    def compute_output_shape(self, input_shape):
        if _is_shape_list(input_shape):
            return input_shape[0]
        return input_shape

    def call(self, inputs):
        if isinstance(inputs, (list, tuple)):
            inputs, style_weights = inputs
        else:
            style_weights = self.style_weights
        return conditional_instance_norm(inputs, style_weights, self.gamma,
                                         self.beta, self.axis, self.epsilon,
                                         self.style_num)

    def get_config(self):
        config = {"style_num": self.style_num}
        base_config = super(ConditionalInstanceNormalization, self).get_config()
        return dict(list(base_config.items()) + list(config.items()))



class DeprocessStylizedImage(tf.keras.layers.Layer):
    """
    A layer to deprocess style transfer network output.

    With activation="tanh" the network's output lies in [-1, 1] and is
    rescaled to [0, 255]; with "sigmoid" it's passed through unchanged.
    """
    def __init__(self, activation="sigmoid", **kwargs):
        super(DeprocessStylizedImage, self).__init__(**kwargs)
        if activation not in DEPROCESS_MODES:
            raise InvalidConfig("activation should be one of %s, got %r"
                                % (DEPROCESS_MODES, activation))
        self.activation = activation

    def compute_output_shape(self, input_shape):
        return input_shape

    def call(self, inputs):
        return deprocess(inputs, self.activation)

    def get_config(self):
        config = {"activation": self.activation}
        base_config = super(DeprocessStylizedImage, self).get_config()
        return dict(list(base_config.items()) + list(config.items()))




custom_objects = {
    "ReflectionPadding2D": ReflectionPadding2D,
    "InstanceNormalization": InstanceNormalization,
    "ConditionalInstanceNormalization": ConditionalInstanceNormalization,
    "DeprocessStylizedImage": DeprocessStylizedImage
}


def serialize_layer(layer):
    """
    Return a {"class_name", "config"} record for one of the layers above
    """
    class_name = layer.__class__.__name__
    if class_name not in custom_objects:
        raise InvalidConfig("%s isn't a stylizer layer" % class_name)
    return {"class_name": class_name, "config": layer.get_config()}


def deserialize_layer(record):
    """
    Rebuild a layer from a {"class_name", "config"} record
    """
    if not isinstance(record, dict) or "class_name" not in record:
        raise InvalidConfig("layer record should be a dict with a class_name, "
                            "got %r" % (record,))
    class_name = record["class_name"]
    if class_name not in custom_objects:
        raise InvalidConfig("unknown layer class %r; expected one of %s"
                            % (class_name, sorted(custom_objects)))
    config = record.get("config", {})
    if not isinstance(config, dict):
        raise InvalidConfig("config for %s should be a dict" % class_name)
    try:
        return custom_objects[class_name].from_config(config)
    except (InvalidPadding, ShapeError, InvalidConfig):
        raise
    except (TypeError, ValueError) as e:
        raise InvalidConfig("bad config for %s: %s" % (class_name, e)) from e
