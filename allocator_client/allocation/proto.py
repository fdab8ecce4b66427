"""Protobuf messages for the Agones allocation service.

The messages are described at import time with a ``FileDescriptorProto`` and
registered in a private descriptor pool, so no generated ``_pb2`` modules are
needed. Only the fields this client reads or writes are declared; field
numbers match ``allocation.proto`` of the Agones allocator, so unknown fields
sent by newer servers are skipped by the decoder.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "allocation"
ALLOCATE_METHOD = "/allocation.AllocationService/Allocate"

_Field = descriptor_pb2.FieldDescriptorProto


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    repeated: bool = False,
    type_name: str | None = None,
) -> None:
    field = message.field.add(
        name=name,
        number=number,
        type=field_type,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = type_name


def _add_string_map(message: descriptor_pb2.DescriptorProto, name: str, number: int) -> None:
    """Declare ``map<string, string> name = number`` on ``message``."""
    entry_name = name[0].upper() + name[1:] + "Entry"
    entry = message.nested_type.add(name=entry_name)
    entry.options.map_entry = True
    _add_field(entry, "key", 1, _Field.TYPE_STRING)
    _add_field(entry, "value", 2, _Field.TYPE_STRING)
    _add_field(
        message,
        name,
        number,
        _Field.TYPE_MESSAGE,
        repeated=True,
        type_name=f".{PACKAGE}.{message.name}.{entry_name}",
    )


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="allocator_client/allocation.proto",
        package=PACKAGE,
        syntax="proto3",
    )

    label_selector = file_proto.message_type.add(name="LabelSelector")
    _add_string_map(label_selector, "matchLabels", 1)

    multi_cluster = file_proto.message_type.add(name="MultiClusterSetting")
    _add_field(multi_cluster, "enabled", 1, _Field.TYPE_BOOL)

    meta_patch = file_proto.message_type.add(name="MetaPatch")
    _add_string_map(meta_patch, "labels", 1)
    _add_string_map(meta_patch, "annotations", 2)

    request = file_proto.message_type.add(name="AllocationRequest")
    _add_field(request, "namespace", 1, _Field.TYPE_STRING)
    _add_field(
        request,
        "multiClusterSetting",
        2,
        _Field.TYPE_MESSAGE,
        type_name=f".{PACKAGE}.MultiClusterSetting",
    )
    _add_field(
        request,
        "requiredGameServerSelector",
        3,
        _Field.TYPE_MESSAGE,
        type_name=f".{PACKAGE}.LabelSelector",
    )
    _add_field(
        request, "metaPatch", 6, _Field.TYPE_MESSAGE, type_name=f".{PACKAGE}.MetaPatch"
    )

    response = file_proto.message_type.add(name="AllocationResponse")
    port = response.nested_type.add(name="GameServerStatusPort")
    _add_field(port, "name", 1, _Field.TYPE_STRING)
    _add_field(port, "port", 2, _Field.TYPE_INT32)
    _add_field(response, "gameServerName", 2, _Field.TYPE_STRING)
    _add_field(
        response,
        "ports",
        3,
        _Field.TYPE_MESSAGE,
        repeated=True,
        type_name=f".{PACKAGE}.AllocationResponse.GameServerStatusPort",
    )
    _add_field(response, "address", 4, _Field.TYPE_STRING)
    _add_field(response, "nodeName", 5, _Field.TYPE_STRING)

    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str) -> type:
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


LabelSelector = _message_class("LabelSelector")
MultiClusterSetting = _message_class("MultiClusterSetting")
MetaPatch = _message_class("MetaPatch")
AllocationRequest = _message_class("AllocationRequest")
AllocationResponse = _message_class("AllocationResponse")
