"""

            _models.py


Keras models for stylization built out of the custom layers

"""

import tensorflow as tf

from stylizer._errors import InvalidConfig
from stylizer._layers import ReflectionPadding2D, InstanceNormalization
from stylizer._layers import ConditionalInstanceNormalization
from stylizer._layers import DeprocessStylizedImage, DEPROCESS_MODES



class ConvBlock():
    """
    Reflection padding -> valid convolution -> instance norm -> activation,
    with optional nearest-neighbor upsampling in front.

    Uses conditional instance norm if there's more than one style or if
    a selector tensor is passed on call.
    """

    def __init__(self, filters, kernel_size=3, strides=1, style_num=1,
                 activation="relu", upsample=False):
        self.filters = filters
        self.kernel_size = kernel_size
        self.strides = strides
        self.style_num = style_num
        self.activation = activation
        self.upsample = upsample

    def _norm(self, net, selector=None):
        if selector is not None:
            return ConditionalInstanceNormalization(self.style_num)([net, selector])
        if self.style_num > 1:
            return ConditionalInstanceNormalization(self.style_num)(net)
        return InstanceNormalization()(net)

    def __call__(self, inpt, selector=None):
        net = inpt
        if self.upsample:
            net = tf.keras.layers.UpSampling2D(size=2,
                                               interpolation="nearest")(net)
        net = ReflectionPadding2D(self.kernel_size//2)(net)
        net = tf.keras.layers.Conv2D(self.filters, self.kernel_size,
                                     strides=self.strides,
                                     padding="valid")(net)
        net = self._norm(net, selector)
        if self.activation is not None:
            net = tf.keras.layers.Activation(self.activation)(net)
        return net



class ResidualBlock():
    """
    Residual block from Johnson et al's fast style transfer network,
    with instance norm in place of batch norm.
    """

    def __init__(self, filters, kernel_size=3, style_num=1):
        self.filters = filters
        self.kernel_size = kernel_size
        self.style_num = style_num

    def __call__(self, inpt, selector=None):
        net = ConvBlock(self.filters, self.kernel_size,
                        style_num=self.style_num)(inpt, selector)
        net = ConvBlock(self.filters, self.kernel_size,
                        style_num=self.style_num,
                        activation=None)(net, selector)
        net = tf.keras.layers.Add()([inpt, net])
        return net



def build_transformer(input_shape=(None, None, 3), style_num=1, bottleneck_dim=None,
                      num_residuals=5, downsample=1, activation="sigmoid"):
    """
    Build the image transformation network: a 3-layer encoder, a stack
    of residual blocks, and an upsampling decoder.

    :input_shape: shape of content images. spatial dimensions should be
        multiples of 4
    :style_num: number of styles the network can represent. more than 1
        uses conditional instance norm
    :bottleneck_dim: if specified, the model takes [content, bottleneck]
        inputs and maps the bottleneck to a softmax selector over styles
    :num_residuals: number of residual blocks
    :downsample: reduce number of kernels by this factor
    :activation: "sigmoid" for [0,1] output or "tanh" for [0,255] output
    """
    if activation not in DEPROCESS_MODES:
        raise InvalidConfig("activation should be one of %s, got %r"
                            % (DEPROCESS_MODES, activation))

    inpt = tf.keras.layers.Input(input_shape)
    inputs = inpt
    selector = None
    if bottleneck_dim is not None:
        bottleneck = tf.keras.layers.Input((bottleneck_dim,))
        selector = tf.keras.layers.Dense(style_num,
                                         activation="softmax")(bottleneck)
        inputs = [inpt, bottleneck]

    # encoder
    net = ConvBlock(int(32/downsample), 9, style_num=style_num)(inpt, selector)
    net = ConvBlock(int(64/downsample), 3, strides=2,
                    style_num=style_num)(net, selector)
    net = ConvBlock(int(128/downsample), 3, strides=2,
                    style_num=style_num)(net, selector)
    # residual part
    for _ in range(num_residuals):
        net = ResidualBlock(int(128/downsample),
                            style_num=style_num)(net, selector)
    # decoder
    net = ConvBlock(int(64/downsample), 3, style_num=style_num,
                    upsample=True)(net, selector)
    net = ConvBlock(int(32/downsample), 3, style_num=style_num,
                    upsample=True)(net, selector)
    net = ReflectionPadding2D(4)(net)
    net = tf.keras.layers.Conv2D(3, kernel_size=9, padding="valid",
                                 activation=activation)(net)
    net = DeprocessStylizedImage(activation)(net)

    return tf.keras.Model(inputs, net)



def build_style_predictor(input_shape=(None, None, 3), bottleneck_dim=100,
                          downsample=1):
    """
    Build a network mapping a style image to a bottleneck vector for
    build_transformer(bottleneck_dim=...)

    :bottleneck_dim: dimension of the style representation
    :downsample: reduce number of kernels by this factor
    """
    inpt = tf.keras.layers.Input(input_shape)
    net = inpt
    for filters in [32, 64, 128, 256]:
        net = ReflectionPadding2D(1)(net)
        net = tf.keras.layers.Conv2D(int(filters/downsample), kernel_size=3,
                                     strides=2, padding="valid")(net)
        net = tf.keras.layers.Activation("relu")(net)
    net = tf.keras.layers.GlobalAveragePooling2D()(net)
    net = tf.keras.layers.Dense(bottleneck_dim, name="bottleneck")(net)
    return tf.keras.Model(inpt, net)
