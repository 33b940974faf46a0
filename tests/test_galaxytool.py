import argparse
import io
import xml.etree.ElementTree as ET

import pytest

from eoulsan.galaxytool.elements import GalaxyToolError, TextToolElement
from eoulsan.galaxytool.interpreter import GalaxyToolInterpreter, ToolInfo, to_search_list
from eoulsan.galaxytool.executor import ToolExecutor
from eoulsan.galaxytool import galaxytool
from eoulsan.tools.common import EoulsanError


SORT_TOOL = """<tool id="sort1" name="Sort" version="1.0.1">
  <description>sort the lines of a file</description>
  <command>
    sort $reverse
    #if $order.mode == "key"
      -k $order.column
    #end if
    $input &gt; $output
  </command>
  <inputs>
    <param name="input" type="data" format="txt"/>
    <param name="reverse" type="boolean" truevalue="-r" falsevalue="" checked="false"/>
    <conditional name="order">
      <param name="mode" type="select">
        <option value="line" selected="true">line</option>
        <option value="key">key</option>
      </param>
      <when value="line"/>
      <when value="key">
        <param name="column" type="integer" value="1" min="1" max="10"/>
      </when>
    </conditional>
  </inputs>
  <outputs>
    <data name="output" format="txt"/>
  </outputs>
</tool>
"""

ECHO_TOOL = """<tool id="echo1" name="Echo" version="1.0">
  <command>echo $message $THREADS &gt; $output</command>
  <inputs>
    <param name="message" type="text" value="hello"/>
  </inputs>
  <outputs>
    <data name="output" format="txt"/>
  </outputs>
</tool>
"""

DOCKER_TOOL = """<tool id="cat1" name="Cat" version="1.0">
  <command dockerimage="ubuntu:20.04">cat $input</command>
  <inputs>
    <param name="input" type="data"/>
  </inputs>
  <outputs/>
</tool>
"""


@pytest.fixture
def sort_tool(tmp_path):
    path = tmp_path/'sort.xml'
    path.write_text(SORT_TOOL)
    return path


def files(tmp_path):
    return {'input': tmp_path/'in.txt'}, {'output': tmp_path/'out.txt'}


class TestInterpreter:
    def test_tool_info(self, sort_tool):
        info = GalaxyToolInterpreter(sort_tool).tool_info
        assert info.tool_id == 'sort1'
        assert info.tool_version == '1.0.1'
        assert info.description == 'sort the lines of a file'
        assert info.docker_image is None
        assert info.tool_source == 'sort.xml'

    def test_render_default_values(self, tmp_path, sort_tool):
        interpreter = GalaxyToolInterpreter(sort_tool)
        interpreter.configure({})
        inputs, outputs = files(tmp_path)

        command = interpreter.render_command(inputs, outputs, tmp_path)

        assert command == f'sort {tmp_path}/in.txt > {tmp_path}/out.txt'

    def test_render_conditional(self, tmp_path, sort_tool):
        interpreter = GalaxyToolInterpreter(sort_tool)
        interpreter.configure({'order.mode': 'key', 'column': 3, 'reverse': 'true'})
        inputs, outputs = files(tmp_path)

        command = interpreter.render_command(inputs, outputs, tmp_path)

        assert command == f'sort -r -k 3 {tmp_path}/in.txt > {tmp_path}/out.txt'

    def test_variables(self, tmp_path, sort_tool):
        interpreter = GalaxyToolInterpreter(sort_tool)
        interpreter.configure({'order.mode': 'key'})
        inputs, outputs = files(tmp_path)

        variables = interpreter.create_variables(inputs, outputs, tmp_path, 0)

        assert variables['THREADS'] == '1'
        assert variables['TMPDIR'] == str(tmp_path)
        assert variables['order.mode'] == 'key'
        assert variables['order.column'] == '1'
        assert variables['input'] == str(tmp_path/'in.txt')

    def test_integer_out_of_range(self, sort_tool):
        interpreter = GalaxyToolInterpreter(sort_tool)
        with pytest.raises(GalaxyToolError):
            interpreter.configure({'order.mode': 'key', 'order.column': '20'})

    def test_invalid_select_value(self, sort_tool):
        with pytest.raises(GalaxyToolError):
            GalaxyToolInterpreter(sort_tool).configure({'order.mode': 'random'})

    def test_missing_output_file(self, tmp_path, sort_tool):
        interpreter = GalaxyToolInterpreter(sort_tool)
        interpreter.configure({})
        with pytest.raises(GalaxyToolError):
            interpreter.render_command({'input': tmp_path/'in.txt'}, {}, tmp_path)

    def test_configure_twice(self, sort_tool):
        interpreter = GalaxyToolInterpreter(sort_tool)
        interpreter.configure({})
        with pytest.raises(RuntimeError):
            interpreter.configure({})

    def test_not_configured(self, tmp_path, sort_tool):
        with pytest.raises(RuntimeError):
            GalaxyToolInterpreter(sort_tool).render_command({}, {}, tmp_path)

    def test_repeat_is_forbidden(self):
        xml = SORT_TOOL.replace('<outputs>', '<repeat name="r"><param name="x" type="text"/></repeat><outputs>')
        with pytest.raises(GalaxyToolError):
            GalaxyToolInterpreter(io.StringIO(xml), 'sort.xml')

    def test_missing_inputs_section(self):
        xml = '<tool id="t"><command>ls</command><outputs/></tool>'
        with pytest.raises(GalaxyToolError):
            GalaxyToolInterpreter(io.StringIO(xml), 't.xml').configure({})

    def test_missing_parameter_without_default(self):
        xml = ECHO_TOOL.replace(' value="hello"', '')
        with pytest.raises(GalaxyToolError):
            GalaxyToolInterpreter(io.StringIO(xml), 'echo.xml').configure({})

    def test_invalid_xml(self):
        with pytest.raises(GalaxyToolError):
            GalaxyToolInterpreter(io.StringIO('<tool>'), 'broken.xml')

    def test_execute_locally(self, tmp_path):
        interpreter = GalaxyToolInterpreter(io.StringIO(ECHO_TOOL), 'echo.xml')
        interpreter.configure({'message': 'hi'})
        output = tmp_path/'out.txt'

        result = interpreter.execute({}, {'output': output}, tmp_path, threads=2, output_dir=tmp_path/'run',
                                     use_docker=False)

        assert result.is_success
        assert output.read_text() == 'hi 2\n'
        assert (tmp_path/'run'/'STDERR').exists()
        with pytest.raises(RuntimeError):
            interpreter.execute({}, {'output': output}, tmp_path, use_docker=False)

    def test_render_keeps_spaces_inside_arguments(self, tmp_path):
        xml = ECHO_TOOL.replace('echo $message $THREADS', "echo 'a  b'\n    $message")
        interpreter = GalaxyToolInterpreter(io.StringIO(xml), 'echo.xml')
        interpreter.configure({})

        command = interpreter.render_command({}, {'output': tmp_path/'out.txt'}, tmp_path)

        assert command == f"echo 'a  b' hello > {tmp_path}/out.txt"

    def test_argument_name(self):
        element = TextToolElement(ET.fromstring('<param argument="--out-file" type="text" value="x"/>'), 'opts')
        assert element.short_name == 'out-file'
        assert element.name == 'opts.out-file'

    def test_to_search_list(self):
        result = to_search_list({'a.b': '1', 'a.c': '2', 'd': '3'})
        assert result['a'] == {'b': '1', 'c': '2'}
        assert result['a.b'] == '1'
        assert result['d'] == '3'


class TestToolExecutor:
    def test_docker_command(self, tmp_path):
        interpreter = GalaxyToolInterpreter(io.StringIO(DOCKER_TOOL), 'cat.xml')
        info = interpreter.tool_info
        assert isinstance(info, ToolInfo)
        data = tmp_path/'data'

        executor = ToolExecutor(info, 'cat /x', tmp_path/'out', input_files=[data/'in.txt'])
        command = executor.create_command()

        assert command[:3] == ['docker', 'run', '--rm']
        assert f'{tmp_path}/out:{tmp_path}/out' in command
        assert f'{data}:{data}' in command
        assert command[-4:] == ['ubuntu:20.04', 'sh', '-c', 'cat /x']

    def test_local_command_when_docker_disabled(self, tmp_path):
        info = GalaxyToolInterpreter(io.StringIO(DOCKER_TOOL), 'cat.xml').tool_info
        executor = ToolExecutor(info, 'cat /x', tmp_path, use_docker=False)
        assert executor.create_command() == ['bash', '-c', 'cat /x']


class TestGalaxytoolStep:
    def test_dry_run(self, tmp_path, sort_tool, capsys):
        parser = galaxytool.get_opts_galaxytool(argparse.ArgumentParser())
        args = parser.parse_args(['--tool_xml', str(sort_tool), '--param', 'order.mode=key',
                                  '--param', 'order.column=2', '--input', f'input={tmp_path}/in.txt',
                                  '--output', f'output={tmp_path}/out.txt', '--dry_run'])

        command = galaxytool.galaxytool(args)

        assert command == f'sort -k 2 {tmp_path}/in.txt > {tmp_path}/out.txt'
        assert command in capsys.readouterr().out

    def test_bad_parameter(self, sort_tool):
        parser = galaxytool.get_opts_galaxytool(argparse.ArgumentParser())
        args = parser.parse_args(['--tool_xml', str(sort_tool), '--param', 'order.mode'])
        with pytest.raises(EoulsanError):
            galaxytool.galaxytool(args)
