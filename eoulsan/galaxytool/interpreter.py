import os
import logging
import xml.etree.ElementTree as ET
from collections import OrderedDict
from pathlib import Path
from Cheetah.Template import Template

from eoulsan.galaxytool.elements import (GalaxyToolError, ConditionalToolElement, child_elements,
                                         new_tool_element, set_element_value, tool_error)
from eoulsan.galaxytool.executor import ToolExecutor


logger = logging.getLogger(__name__)

TAG_FORBIDDEN = ['repeat']
TMP_DIR_VARIABLE_NAME = 'TMPDIR'
THREADS_VARIABLE_NAME = 'THREADS'


def remove_namespace(variable_name):
    if variable_name is None:
        return None
    return variable_name.rsplit('.', 1)[-1]


class ToolInfo():
    """
    description of the tool read from the XML
    """
    def __init__(self, root, tool_source):
        self.tool_source = tool_source
        self.tool_id = root.get('id')
        self.tool_name = root.get('name')
        self.tool_version = root.get('version')

        description = root.find('.//description')
        self.description = description.text if description is not None else None

        command = root.find('.//command')
        self.cheetah_script = command.text if command is not None else None
        interpreter = command.get('interpreter', '') if command is not None else ''
        self.interpreters = [i.strip() for i in interpreter.split(',')] if interpreter else []
        self.docker_image = command.get('dockerimage') if command is not None else None

    def __repr__(self):
        return f'ToolInfo(id={self.tool_id}, name={self.tool_name}, version={self.tool_version}, ' \
               f'description={self.description}, interpreters={self.interpreters}, ' \
               f'docker_image={self.docker_image}, source={self.tool_source})'


def extract_section(tool_info, root, tag):
    elements = list(root.iter(tag))
    if not elements:
        raise GalaxyToolError(f"Parsing tool XML file: no {tag} tag found.")
    if len(elements) != 1:
        raise tool_error(tool_info, f'invalid entry count found in "{tag}" tag (expected 1 found {len(elements)})')
    return elements[0]


def extract_param_elements(tool_info, parent, tag, parameters):
    results = OrderedDict()
    for element in child_elements(parent, tag):
        tool_element = new_tool_element(tool_info, element)
        set_element_value(tool_element, parameters)
        results[tool_element.name] = tool_element
    return results


def extract_conditional_elements(tool_info, parent, parameters):
    results = OrderedDict()
    for element in child_elements(parent, 'conditional'):
        conditional = ConditionalToolElement(tool_info, element)
        conditional.set_values(parameters)
        results[conditional.selected_element.name] = conditional.selected_element
        results.update(conditional.elements_result)
    return results


def extract_inputs(tool_info, root, parameters):
    section = extract_section(tool_info, root, 'inputs')
    results = extract_param_elements(tool_info, section, 'param', parameters)
    results.update(extract_conditional_elements(tool_info, section, parameters))
    return results


def extract_outputs(tool_info, root, parameters):
    section = extract_section(tool_info, root, 'outputs')
    results = extract_param_elements(tool_info, section, 'data', parameters)
    results.update(extract_conditional_elements(tool_info, section, parameters))
    return results


def to_search_list(variables):
    """
    Namespaced variables are also exposed as nested dicts, so $cond.param can be used in the script.
    """
    result = dict(variables)
    for name, value in variables.items():
        if '.' not in name:
            continue
        parts = name.split('.')
        current = result
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value
    return result


def render_cheetah(script, variables):
    if not variables:
        raise GalaxyToolError("No variable set for Cheetah script.")
    output = str(Template(source=script, searchList=[to_search_list(variables)]))
    return ' '.join(line.strip() for line in output.splitlines() if line.strip())


class GalaxyToolInterpreter():
    """
    Create the command line of a Galaxy tool from its XML file and execute it.
    """
    def __init__(self, source, tool_source=None):
        if isinstance(source, (str, os.PathLike)):
            tool_source = tool_source or Path(source).name
        self.tool_source = tool_source
        try:
            self.root = ET.parse(source).getroot()
        except ET.ParseError as e:
            raise GalaxyToolError(f"Error while parsing \"{tool_source}\" Galaxy tool file: {e}")
        self.tool_info = ToolInfo(self.root, tool_source)
        self.check_validity()

        self.inputs = None
        self.outputs = None
        self.is_configured = False
        self.is_executed = False

    def check_validity(self):
        for tag in TAG_FORBIDDEN:
            if next(self.root.iter(tag), None) is not None:
                raise GalaxyToolError(f"Parsing tool xml: unsupported tag {tag}")

    def configure(self, parameters):
        """
        Set the values of the tool parameters, parameters is a dict name -> value.
        """
        if self.is_configured:
            raise RuntimeError("GalaxyToolStep, this instance has been already configured")
        parameters = {k: str(v) for k, v in (parameters or {}).items()}
        self.inputs = extract_inputs(self.tool_info, self.root, parameters)
        self.outputs = extract_outputs(self.tool_info, self.root, parameters)
        self.is_configured = True

    @property
    def input_data_elements(self):
        return [e for e in self.inputs.values() if e.is_data]

    @property
    def output_data_elements(self):
        return [e for e in self.outputs.values() if e.is_data]

    @staticmethod
    def _lookup_file(files, element, kind):
        path = files.get(element.name)
        if path is None:
            path = files.get(element.short_name)
        if path is None:
            raise GalaxyToolError(f"No {kind} file set for the tool element: {element.name}")
        return str(Path(path).absolute())

    def create_variables(self, input_files, output_files, tmp_dir, threads):
        if not self.is_configured:
            raise RuntimeError("The Galaxy tool has not been configured")

        variables = OrderedDict()
        variables[TMP_DIR_VARIABLE_NAME] = str(Path(tmp_dir).absolute())
        variables[THREADS_VARIABLE_NAME] = str(threads if threads and int(threads) > 0 else 1)

        for elements, files, kind in ((self.inputs, input_files, 'input'), (self.outputs, output_files, 'output')):
            for element in elements.values():
                if element.is_data:
                    value = self._lookup_file(files, element, kind)
                    variables[element.name] = value
                    variables[remove_namespace(element.name)] = value
                else:
                    variables[element.name] = element.value
        return variables

    def render_command(self, input_files=None, output_files=None, tmp_dir=None, threads=1):
        variables = self.create_variables(input_files or {}, output_files or {}, tmp_dir or os.getcwd(), threads)
        logger.info("Tool variables: %s", '\t'.join(f'{k}={v}' for k, v in variables.items()))
        return render_cheetah(self.tool_info.cheetah_script, variables)

    def execute(self, input_files=None, output_files=None, tmp_dir=None, threads=1, output_dir=None,
                use_docker=True):
        if self.is_executed:
            raise RuntimeError("this instance has been already executed")

        logger.info("Tool description: %s", self.tool_info)
        command_line = self.render_command(input_files, output_files, tmp_dir, threads)

        executor = ToolExecutor(self.tool_info, command_line, output_dir or os.getcwd(),
                                input_files=(input_files or {}).values(), use_docker=use_docker)
        try:
            return executor.execute()
        finally:
            self.is_executed = True

    def __repr__(self):
        return f'GalaxyToolInterpreter(tool={self.tool_info}, inputs={self.inputs}, outputs={self.outputs})'
