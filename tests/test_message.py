from zinx.message import Message, new_message, new_message_by_msg_id, new_msg_package


def test_new_msg_package_uses_payload_length():
    data = b"client test message"
    msg = new_msg_package(7, data)
    assert msg.msg_id == 7
    assert msg.data_len == len(data)
    assert msg.data == data
    assert msg.raw_data == data


def test_new_message_has_zero_id_and_given_length():
    msg = new_message(3, b"abcdef")
    assert msg.msg_id == 0
    assert msg.data_len == 3
    assert msg.data == b"abcdef"
    assert msg.raw_data == b"abcdef"


def test_new_message_by_msg_id_keeps_all_fields():
    msg = new_message_by_msg_id(9, 2, b"xy")
    assert (msg.msg_id, msg.data_len, msg.data, msg.raw_data) == (9, 2, b"xy", b"xy")


def test_init_replaces_id_and_payload():
    msg = new_message_by_msg_id(1, 100, b"old")
    msg.init(5, b"new data")
    assert msg.msg_id == 5
    assert msg.data == b"new data"
    assert msg.raw_data == b"new data"
    assert msg.data_len == len(b"new data")


def test_default_message_is_empty():
    msg = Message()
    assert msg.data_len == len(msg.data)
    assert msg.data == msg.raw_data


def test_fields_are_assignable():
    msg = new_msg_package(1, b"abc")
    msg.msg_id = 4
    msg.data_len = 1
    msg.data = b"z"
    assert msg == Message(msg_id=4, data_len=1, data=b"z", raw_data=b"abc")