r"""
Convert a restructured text document to html.

Transform descriptions are written as restructured text in the action
docstrings.  Inline math can use the *math* role, or latex style
*\$expression\$*.
"""
import re
from docutils.core import publish_parts


def rst2html(rst, part='html_body', math_output="html"):
    """
    Convert restructured text into html.

    *math_output* is one of html, mathml or mathjax.

    *part* selects the piece of the document to return:

        whole: the entire html document

        html_body: document division with title and contents and footer

        body: contents only
    """
    rst = replace_dollar(rst)
    overrides = {"math_output": math_output, "report_level": 5}
    parts = publish_parts(source=rst, writer_name='html', settings_overrides=overrides)
    return parts[part]


_dollar = re.compile(r"(?:^|(?<=\s|[(]))[$]([^\n]*?)(?<![\\])[$](?:$|(?=\s|[.,;)\\]))")
_notdollar = re.compile(r"\\[$]")
def replace_dollar(content):
    """
    Convert dollar signs to inline math markup in rst.
    """
    content = _dollar.sub(r":math:`\1`", content)
    content = _notdollar.sub("$", content)
    return content
