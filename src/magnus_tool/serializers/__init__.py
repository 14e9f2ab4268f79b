"""Export serializers for Magnus Tool."""

from magnus_tool.serializers.base import (
    ExportSerializer,
    SerializerRegistry,
    registry,
    write_result_set,
)
from magnus_tool.serializers.csv import CSVSerializer
from magnus_tool.serializers.excel import ExcelSerializer
from magnus_tool.serializers.json import JSONSerializer
