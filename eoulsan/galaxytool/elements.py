from collections import OrderedDict

from eoulsan.tools.common import EoulsanError


SEP = '.'


class GalaxyToolError(EoulsanError):
    pass


def tool_error(tool_info, message, parameter_name=None):
    source = tool_info.tool_source if tool_info else None
    if parameter_name is None:
        return GalaxyToolError(f'Error while parsing "{source}" Galaxy tool file: {message}')
    return GalaxyToolError(f'Error while parsing "{parameter_name}" parameter of the "{source}" '
                           f'Galaxy tool file: {message}')


def child_elements(parent, tag):
    """direct children of parent with the tag"""
    return [e for e in list(parent) if e.tag == tag]


class ToolElement():
    """
    a <param> or <data> element of a Galaxy tool
    """
    is_data = False

    def __init__(self, element, namespace=None):
        short_name = element.get('name')
        if not short_name and element.get('argument'):
            short_name = element.get('argument').lstrip('-')
        self.short_name = short_name
        self.namespace = namespace
        self.name = f'{namespace}{SEP}{short_name}' if namespace else short_name
        self.type = element.get('type', '')
        self.label = element.get('label', '')
        self.help = element.get('help', '')
        optional = element.get('optional')
        self.is_optional = None if optional is None else optional.lower() == 'true'
        self.is_setting = False

    @property
    def value(self):
        raise NotImplementedError

    def set_value(self, value):
        raise NotImplementedError

    def set_parameter(self, value):
        """value from the parameters given to the tool, None if not given"""
        if value is None:
            if not self.is_setting:
                raise GalaxyToolError(f"GalaxyTool parameter missing to set {self.name}")
            return
        self.set_value(value)

    def __repr__(self):
        return f'{self.__class__.__name__}(name={self.name}, type={self.type}, value={self.value})'


class BooleanToolElement(ToolElement):
    TYPE = 'boolean'

    def __init__(self, element, namespace=None):
        ToolElement.__init__(self, element, namespace)
        self.true_value = element.get('truevalue', 'true')
        self.false_value = element.get('falsevalue', 'false')
        self.checked = element.get('checked', 'false').strip().lower() in ('true', 'yes', 'on')
        self.is_setting = True

    @property
    def value(self):
        return self.true_value if self.checked else self.false_value

    def set_value(self, value):
        value = str(value).strip().lower()
        if value not in ('true', 'false', 'yes', 'no', 'on', 'off', '1', '0'):
            raise GalaxyToolError(f"Invalid boolean value for {self.name}: {value}")
        self.checked = value in ('true', 'yes', 'on', '1')
        self.is_setting = True


class NumberToolElement(ToolElement):
    cast = float

    def __init__(self, element, namespace=None):
        ToolElement.__init__(self, element, namespace)
        self.min = self._parse(element.get('min'))
        self.max = self._parse(element.get('max'))
        self._value = None
        if element.get('value', '').strip() != '':
            self.set_value(element.get('value'))

    def _parse(self, value):
        if value is None or value.strip() == '':
            return None
        try:
            return self.cast(value.strip())
        except ValueError:
            raise GalaxyToolError(f"Invalid {self.TYPE} value for {self.name}: {value}")

    @property
    def value(self):
        return None if self._value is None else str(self._value)

    def set_value(self, value):
        number = self._parse(str(value))
        if number is None:
            raise GalaxyToolError(f"Invalid {self.TYPE} value for {self.name}: {value}")
        if (self.min is not None and number < self.min) or (self.max is not None and number > self.max):
            raise GalaxyToolError(f"Invalid value for {self.name}: {value} not in range [{self.min}, {self.max}]")
        self._value = number
        self.is_setting = True


class IntegerToolElement(NumberToolElement):
    TYPE = 'integer'
    cast = int


class FloatToolElement(NumberToolElement):
    TYPE = 'float'
    cast = float


class SelectToolElement(ToolElement):
    TYPE = 'select'

    def __init__(self, element, namespace=None):
        ToolElement.__init__(self, element, namespace)
        self.options = []
        self._value = None
        for option in element.iter('option'):
            option_value = option.get('value', (option.text or '').strip())
            self.options.append(option_value)
            if option.get('selected', 'false').lower() == 'true' and self._value is None:
                self._value = option_value
        if self._value is None and self.options:
            self._value = self.options[0]
        self.is_setting = self._value is not None

    @property
    def value(self):
        return self._value

    def set_value(self, value):
        value = str(value).strip()
        if value not in self.options:
            raise GalaxyToolError(f"Invalid value for {self.name}: {value} is not one of {self.options}")
        self._value = value
        self.is_setting = True


class TextToolElement(ToolElement):
    TYPE = 'text'

    def __init__(self, element, namespace=None):
        ToolElement.__init__(self, element, namespace)
        self._value = element.get('value')
        self.is_setting = self._value is not None

    @property
    def value(self):
        return self._value

    def set_value(self, value):
        self._value = str(value)
        self.is_setting = True


class DataToolElement(ToolElement):
    """
    input file parameter, the value is set at execution time
    """
    TYPE = 'data'
    is_data = True

    def __init__(self, element, namespace=None):
        ToolElement.__init__(self, element, namespace)
        self.format = element.get('format', '')
        self._value = element.get('value')
        self.is_setting = True

    @property
    def value(self):
        return self._value

    def set_value(self, value):
        self._value = str(value)


class OutputDataToolElement(DataToolElement):
    TAG_NAME = 'data'


ELEMENT_TYPES = {
    BooleanToolElement.TYPE: BooleanToolElement,
    IntegerToolElement.TYPE: IntegerToolElement,
    FloatToolElement.TYPE: FloatToolElement,
    SelectToolElement.TYPE: SelectToolElement,
    TextToolElement.TYPE: TextToolElement,
}


def new_tool_element(tool_info, element, namespace=None):
    if element.tag == OutputDataToolElement.TAG_NAME:
        return OutputDataToolElement(element, namespace)
    element_type = element.get('type', '').lower()
    cls = ELEMENT_TYPES.get(element_type, DataToolElement)
    try:
        return cls(element, namespace)
    except GalaxyToolError as e:
        raise tool_error(tool_info, str(e), element.get('name'))


def set_element_value(tool_element, parameters):
    """
    Set the value of a non data element from the parameters, by full name then short name.
    """
    if tool_element.is_data:
        return
    value = parameters.get(tool_element.name)
    if value is None:
        value = parameters.get(tool_element.short_name)
    tool_element.set_parameter(value)


class ConditionalToolElement():
    """
    <conditional> element: a select parameter and the elements of each of its values
    """
    def __init__(self, tool_info, element):
        self.namespace = element.get('name')
        params = child_elements(element, 'param')
        if len(params) != 1:
            raise tool_error(tool_info, "no valid parameter element found. Only 1 element must be found "
                             f"in conditional element (found: {len(params)})", self.namespace)
        if params[0].get('type') != SelectToolElement.TYPE:
            raise tool_error(tool_info, 'no parameter with "select" type found in conditional element',
                             self.namespace)

        self.selected_element = SelectToolElement(params[0], self.namespace)
        self.options = OrderedDict()
        for when in element.iter('when'):
            when_value = when.get('value')
            elements = self.options.setdefault(when_value, [])
            for e in list(when.iter('param')) + list(when.iter('data')):
                elements.append(new_tool_element(tool_info, e, self.namespace))
        self.elements_result = OrderedDict()
        self.is_set = False

    @property
    def name(self):
        return self.namespace

    @property
    def value(self):
        return self.selected_element.value

    def set_values(self, parameters):
        set_element_value(self.selected_element, parameters)
        for tool_element in self.options.get(self.selected_element.value, []):
            set_element_value(tool_element, parameters)
            self.elements_result[tool_element.name] = tool_element
        self.is_set = True

    def __repr__(self):
        return f'ConditionalToolElement(name={self.namespace}, selected={self.selected_element}, ' \
               f'options={list(self.options)})'
