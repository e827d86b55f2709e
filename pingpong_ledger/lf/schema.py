"""
Protocol Buffers schema for the package payload.

Declares the subset of the DAML-LF 1 archive messages that name a
package's modules, registered in a private descriptor pool:

  ArchivePayload { string minor = 3; oneof Sum { Package daml_lf_1 = 2; } }
  Package { repeated Module modules = 1; repeated string interned_strings = 2;
            repeated InternedDottedName interned_dotted_names = 3; }
  InternedDottedName { repeated int32 segments_interned_str = 1; }
  Module { oneof name { DottedName name_dname = 1; int32 name_interned_dname = 8; } }
  DottedName { repeated string segments = 1; }

Fields outside this subset are kept as unknown fields by the parser.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_PROTO_PACKAGE = "pingpong_ledger.lf"

_Field = descriptor_pb2.FieldDescriptorProto


def _add_message(file_proto, name, fields, oneof=None):
    message = file_proto.message_type.add(name=name)
    if oneof:
        message.oneof_decl.add(name=oneof)
    for field_name, number, field_type, label, type_name, in_oneof in fields:
        field = message.field.add(
            name=field_name, number=number, type=field_type, label=label
        )
        if type_name:
            field.type_name = f".{_PROTO_PACKAGE}.{type_name}"
        if in_oneof:
            field.oneof_index = 0


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="pingpong_ledger/lf/archive.proto",
        package=_PROTO_PACKAGE,
        syntax="proto3",
    )
    optional, repeated = _Field.LABEL_OPTIONAL, _Field.LABEL_REPEATED

    _add_message(file_proto, "DottedName", [
        ("segments", 1, _Field.TYPE_STRING, repeated, None, False),
    ])
    _add_message(file_proto, "InternedDottedName", [
        ("segments_interned_str", 1, _Field.TYPE_INT32, repeated, None, False),
    ])
    _add_message(file_proto, "Module", [
        ("name_dname", 1, _Field.TYPE_MESSAGE, optional, "DottedName", True),
        ("name_interned_dname", 8, _Field.TYPE_INT32, optional, None, True),
    ], oneof="name")
    _add_message(file_proto, "Package", [
        ("modules", 1, _Field.TYPE_MESSAGE, repeated, "Module", False),
        ("interned_strings", 2, _Field.TYPE_STRING, repeated, None, False),
        ("interned_dotted_names", 3, _Field.TYPE_MESSAGE, repeated, "InternedDottedName", False),
    ])
    _add_message(file_proto, "ArchivePayload", [
        ("daml_lf_1", 2, _Field.TYPE_MESSAGE, optional, "Package", True),
        ("minor", 3, _Field.TYPE_STRING, optional, None, False),
    ], oneof="Sum")
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.Add(_file_descriptor())


def _message_class(name: str):
    return message_factory.GetMessageClass(
        _pool.FindMessageTypeByName(f"{_PROTO_PACKAGE}.{name}")
    )


DottedName = _message_class("DottedName")
InternedDottedName = _message_class("InternedDottedName")
Module = _message_class("Module")
Package = _message_class("Package")
ArchivePayload = _message_class("ArchivePayload")
